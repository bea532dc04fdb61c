"""SMTP delivery over one reused aiosmtplib connection."""

import asyncio
import base64
import logging
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any

import aiosmtplib

logger = logging.getLogger(__name__)

PERMANENT_FAILURE_MARKERS = (
    "Invalid recipient",
    "Invalid email address",
    "Recipient address rejected",
    "User unknown",
)


def is_permanent_failure(exc: BaseException) -> bool:
    """True when retrying the same message can never succeed."""
    if isinstance(exc, aiosmtplib.SMTPRecipientsRefused):
        return bool(exc.recipients) and all(r.code >= 500 for r in exc.recipients)
    if isinstance(exc, aiosmtplib.SMTPRecipientRefused) and exc.code >= 500:
        return True
    message = str(exc)
    return any(marker in message for marker in PERMANENT_FAILURE_MARKERS)


def retry_delay(attempts: int) -> float:
    """Seconds to wait before the next try: 1 min doubling per attempt, capped at 1 h."""
    return float(min(60 * 2 ** max(attempts - 1, 0), 3600))


def build_message(
    *,
    to_address: str,
    from_address: str,
    subject: str,
    html: str,
    text: str = "",
    attachments: list[dict[str, Any]] | None = None,
) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = from_address
    msg["To"] = to_address
    msg["Subject"] = subject
    domain = from_address.rpartition("@")[2] or None
    msg["Message-ID"] = make_msgid(domain=domain)
    msg.set_content(text or "")
    msg.add_alternative(html, subtype="html")

    for attachment in attachments or []:
        content_type = attachment.get("content_type") or "application/octet-stream"
        maintype, _, subtype = content_type.partition("/")
        msg.add_attachment(
            base64.b64decode(attachment["content"]),
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=attachment.get("filename"),
        )
    return msg


class SmtpTransport:
    """Keeps a single SMTP session open and sends messages through it one at a time."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = False,
        require_tls: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username or None
        self._password = password or None
        self._use_tls = use_tls
        self._require_tls = require_tls
        self._timeout = timeout
        self._client: aiosmtplib.SMTP | None = None
        self._lock = asyncio.Lock()

    def _new_client(self) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self._host,
            port=self._port,
            username=self._username,
            password=self._password,
            use_tls=self._use_tls,
            start_tls=True if self._require_tls else None,
            timeout=self._timeout,
        )

    async def _ensure_connected(self) -> aiosmtplib.SMTP:
        if self._client is None or not self._client.is_connected:
            self._client = self._new_client()
            await self._client.connect()
            logger.info("Connected to SMTP server %s:%d", self._host, self._port)
        return self._client

    async def verify(self) -> None:
        async with self._lock:
            client = await self._ensure_connected()
            await client.noop()

    async def send(self, message: EmailMessage) -> str:
        """Send and return the Message-ID the server accepted."""
        async with self._lock:
            client = await self._ensure_connected()
            try:
                await client.send_message(message)
            except aiosmtplib.SMTPServerDisconnected:
                self._client = None
                raise
        return message["Message-ID"]

    async def close(self) -> None:
        async with self._lock:
            client, self._client = self._client, None
            if client is not None and client.is_connected:
                try:
                    await client.quit()
                except aiosmtplib.SMTPException:
                    logger.warning("SMTP QUIT failed, dropping connection", exc_info=True)
                    client.close()
