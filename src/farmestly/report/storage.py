"""Report artifact storage with HMAC-signed, time-limited download URLs."""

import asyncio
import hashlib
import hmac
import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from datetime import timedelta
from pathlib import Path
from urllib.parse import quote, urlencode

from starlette.requests import Request
from starlette.responses import FileResponse, Response

from farmestly.exceptions import StorageError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")


def sanitize_key(key: str) -> str:
    """Restrict a storage key to [A-Za-z0-9_.-] so it can never leave the storage root."""
    safe = _UNSAFE_KEY_CHARS.sub("", key).lstrip(".")
    if not safe:
        raise StorageError(f"Storage key {key!r} has no safe characters")
    return safe


class ReportStorage(ABC):
    """Where generated reports live and how clients are allowed to fetch them."""

    def __init__(self, expiry_minutes: int = 30) -> None:
        self._expiry = timedelta(minutes=expiry_minutes)

    @property
    def default_expiry(self) -> timedelta:
        return self._expiry

    @abstractmethod
    async def save(self, key: str, data: bytes) -> str: ...

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    def get_signed_url(self, key: str) -> str: ...

    @abstractmethod
    def verify_request(self, request: Request) -> bool: ...

    @abstractmethod
    def send_file(self, key: str) -> Response: ...


class FileSystemStorage(ReportStorage):
    """Stores PDFs under one directory on local disk.

    Download URLs look like ``/report/download/<key>?expires=<unix>&signature=<hex>``
    where the signature is HMAC-SHA256 over ``"<path>:<expires>"``. Files are
    handed to the reverse proxy with ``X-Accel-Redirect`` when an internal
    prefix is configured, otherwise streamed by the app.
    """

    def __init__(
        self,
        base_path: str | Path,
        secret: str,
        expiry_minutes: int = 30,
        download_path: str = "/report/download",
        accel_redirect_prefix: str = "/_internal_reports/",
        public_base_url: str = "",
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(expiry_minutes)
        self._base_path = Path(base_path)
        self._secret = secret.encode()
        self._download_path = download_path.rstrip("/")
        self._accel_prefix = accel_redirect_prefix
        self._public_base_url = public_base_url.rstrip("/")
        self._clock = clock

    def _file_path(self, key: str) -> Path:
        return self._base_path / sanitize_key(key)

    async def save(self, key: str, data: bytes) -> str:
        path = self._file_path(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            raise StorageError(f"Could not write report {path.name}: {exc}") from exc
        logger.info("Stored report %s (%d bytes)", path.name, len(data))
        return path.name

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".part")
        tmp.write_bytes(data)
        tmp.replace(path)

    async def exists(self, key: str) -> bool:
        try:
            return self._file_path(key).is_file()
        except StorageError:
            return False

    async def delete(self, key: str) -> bool:
        path = self._file_path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    # Signing

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def _download_url_path(self, key: str) -> str:
        return f"{self._download_path}/{quote(sanitize_key(key))}"

    def get_signed_url(self, key: str) -> str:
        """Mint a fresh signed URL; every call gets a new expiry."""
        path = self._download_url_path(key)
        expires = int(self._clock() + self._expiry.total_seconds())
        query = urlencode({"expires": expires, "signature": self._signature(path, expires)})
        return f"{self._public_base_url}{path}?{query}"

    def verify(self, path: str, expires: str | int | None, signature: str | None) -> bool:
        if not expires or not signature:
            return False
        try:
            expires_at = int(expires)
        except (TypeError, ValueError):
            return False
        if expires_at < self._clock():
            return False
        expected = self._signature(path, expires_at)
        return hmac.compare_digest(expected, signature)

    def verify_query(self, path: str, query: Mapping[str, str]) -> bool:
        return self.verify(path, query.get("expires"), query.get("signature"))

    def verify_request(self, request: Request) -> bool:
        ok = self.verify_query(request.url.path, request.query_params)
        if not ok:
            logger.warning("Rejected report download for %s", request.url.path)
        return ok

    # Serving

    def send_file(self, key: str) -> Response:
        safe_key = sanitize_key(key)
        disposition = f'inline; filename="{safe_key}"'
        if self._accel_prefix:
            return Response(
                status_code=200,
                media_type=PDF_CONTENT_TYPE,
                headers={
                    "Content-Disposition": disposition,
                    "X-Accel-Redirect": f"{self._accel_prefix.rstrip('/')}/{safe_key}",
                },
            )
        return FileResponse(
            self._file_path(safe_key),
            media_type=PDF_CONTENT_TYPE,
            headers={"Content-Disposition": disposition},
        )
