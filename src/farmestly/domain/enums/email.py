from enum import Enum


class EmailStatus(str, Enum):
    """Queued e-mail delivery state."""

    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"  # transient, waiting for its backoff to elapse
    PERMANENTLY_FAILED = "permanently_failed"
