"""Service-wide exception hierarchy.

Every error carries a short machine-readable ``code``. Background report
processing records that code on the failed job; the HTTP layer returns it
as the error detail.
"""


class FarmestlyError(Exception):
    code = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(message or self.code)


class ReportError(FarmestlyError):
    """A report request that cannot be fulfilled (limits, missing e-mail, ...)."""

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message, code=code)


class InvalidJobTransition(FarmestlyError):
    code = "INVALID_JOB_TRANSITION"


class RenderError(FarmestlyError):
    code = "RENDER_FAILED"


class RenderTimeoutError(RenderError):
    code = "RENDER_TIMEOUT"


class StorageError(FarmestlyError):
    code = "STORAGE_FAILED"


class EmailValidationError(FarmestlyError):
    code = "INVALID_EMAIL"


class EmailQueueNotReady(FarmestlyError):
    code = "EMAIL_QUEUE_UNAVAILABLE"


class EmailNotFound(FarmestlyError):
    code = "EMAIL_NOT_FOUND"
