"""Durable outbound e-mail queue.

Messages are stored first and sent later by a sweep that runs every
``send_interval`` seconds (and right away for priority mail). Failed sends are
retried with exponential backoff until ``max_attempts`` is reached. All state
is in the database, so a restart picks up where the last process left off.
"""

import asyncio
import base64
import html as html_lib
import logging
import re
import uuid
from datetime import datetime
from email.utils import parseaddr
from typing import Any, Coroutine

from farmestly.db.models.queued_email import QueuedEmail
from farmestly.domain.clock import to_naive_utc, utcnow
from farmestly.domain.enums import EmailStatus
from farmestly.exceptions import EmailQueueNotReady, EmailValidationError
from farmestly.mail.store import SqlEmailStore
from farmestly.mail.transport import SmtpTransport, build_message, is_permanent_failure, retry_delay

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_HEAD_RE = re.compile(r"<(head|style|script)\b.*?</\1>", re.IGNORECASE | re.DOTALL)
_SPACE_RE = re.compile(r"\s+")


def strip_html(html: str) -> str:
    text = _HEAD_RE.sub(" ", html)
    text = _TAG_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", html_lib.unescape(text)).strip()


def _to_base64(content: Any) -> str:
    if isinstance(content, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(content)).decode("ascii")
    return str(content)


class EmailQueue:
    def __init__(
        self,
        store: SqlEmailStore,
        transport: SmtpTransport,
        default_from: str = "",
        send_interval: float = 30.0,
        retry_interval: float = 300.0,
        batch_size: int = 10,
        default_max_attempts: int = 5,
    ) -> None:
        self._store = store
        self._transport = transport
        self._default_from = default_from
        self._send_interval = send_interval
        self._retry_interval = retry_interval
        self._batch_size = batch_size
        self._default_max_attempts = default_max_attempts

        self._started = False
        self._shutting_down = False
        self._is_processing = False
        self._loops: list[asyncio.Task] = []
        self._sweeps: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutting_down

    # Lifecycle

    async def start(self) -> None:
        if self._started:
            return
        await self._transport.verify()
        self._shutting_down = False
        self._started = True
        self._loops = [
            asyncio.create_task(self._every(self._send_interval, self.process_queue), name="email-send-sweep"),
            asyncio.create_task(self._every(self._retry_interval, self._retry_sweep), name="email-retry-sweep"),
        ]
        logger.info("E-mail queue started (send every %gs, retry every %gs)", self._send_interval, self._retry_interval)
        self._trigger_sweep()

    async def shutdown(self) -> None:
        if not self._started:
            return
        self._shutting_down = True
        tasks = [*self._loops, *self._sweeps]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loops.clear()
        self._sweeps.clear()
        await self._transport.close()
        self._started = False
        logger.info("E-mail queue stopped")

    async def join(self) -> None:
        """Wait for sweeps triggered by enqueue/retry to finish."""
        while self._sweeps:
            await asyncio.gather(*list(self._sweeps), return_exceptions=True)

    # Producer side

    async def enqueue(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
        from_address: str | None = None,
        attachments: list[dict[str, Any]] | None = None,
        priority: int = 0,
        scheduled_for: datetime | None = None,
        max_attempts: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Store a message for delivery and return its id."""
        if not self._started:
            raise EmailQueueNotReady("E-mail queue is not started")
        if self._shutting_down:
            raise EmailQueueNotReady("E-mail queue is shutting down")
        if not to or not subject or not html:
            raise EmailValidationError("Required fields: to, subject, html")
        if "@" not in parseaddr(to)[1]:
            raise EmailValidationError(f"Invalid recipient address {to!r}")

        email = QueuedEmail(
            id=uuid.uuid4(),
            to_address=to,
            from_address=from_address or self._default_from,
            subject=subject,
            html=html,
            text=text or strip_html(html),
            attachments=[
                {
                    "filename": att.get("filename"),
                    "content": _to_base64(att.get("content", b"")),
                    "content_type": att.get("content_type") or "application/pdf",
                }
                for att in attachments or []
            ],
            status=EmailStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts or self._default_max_attempts,
            priority=priority,
            scheduled_for=to_naive_utc(scheduled_for) if scheduled_for else utcnow(),
            extra=metadata or {},
        )
        email_id = await self._store.add(email)
        logger.info("Queued e-mail %s to %s (priority %d)", email_id, to, priority)

        if priority > 0 and not self._is_processing:
            self._trigger_sweep()
        return str(email_id)

    async def retry_email(self, email_id: str | uuid.UUID) -> None:
        """Reset one message to a fresh pending state and sweep right away."""
        if not self._started:
            raise EmailQueueNotReady("E-mail queue is not started")
        await self._store.retry_email(uuid.UUID(str(email_id)))
        self._trigger_sweep()

    async def get_stats(self) -> dict[str, Any]:
        if not self._started:
            return {"initialized": False}
        stats = await self._store.get_stats()
        stats["initialized"] = True
        stats["processing"] = self._is_processing
        return stats

    # Consumer side

    async def process_queue(self) -> int:
        """Send one batch, strictly one message at a time. Returns messages attempted."""
        if not self._started or self._shutting_down or self._is_processing:
            return 0
        self._is_processing = True
        try:
            emails = await self._store.get_pending(self._batch_size)
            for email in emails:
                if self._shutting_down:
                    break
                await self._process_email(email)
            if emails:
                logger.info("E-mail sweep attempted %d message(s)", len(emails))
            return len(emails)
        finally:
            self._is_processing = False

    async def _process_email(self, email: QueuedEmail) -> None:
        await self._store.mark_as_sending(email.id)
        attempts = email.attempts + 1
        try:
            message = build_message(
                to_address=email.to_address,
                from_address=email.from_address,
                subject=email.subject,
                html=email.html,
                text=email.text,
                attachments=email.attachments,
            )
            message_id = await self._transport.send(message)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            if is_permanent_failure(exc) or attempts >= email.max_attempts:
                logger.error("E-mail %s permanently failed after %d attempt(s): %s", email.id, attempts, error)
                await self._store.mark_as_permanently_failed(email.id, error)
            else:
                delay = retry_delay(attempts)
                logger.warning("E-mail %s failed (attempt %d), retrying in %ds: %s", email.id, attempts, delay, error)
                await self._store.mark_as_failed(email.id, error, delay)
            return
        await self._store.mark_as_sent(email.id, message_id)
        logger.info("Sent e-mail %s to %s", email.id, email.to_address)

    async def _retry_sweep(self) -> int:
        moved = await self._store.retry_failed()
        if moved:
            logger.info("Re-queued %d failed e-mail(s)", moved)
            await self.process_queue()
        return moved

    # Scheduling

    async def _every(self, interval: float, action) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await action()
            except Exception:
                logger.exception("E-mail queue periodic %s failed", getattr(action, "__name__", action))

    def _trigger_sweep(self) -> None:
        self._spawn(self._guarded_sweep())

    async def _guarded_sweep(self) -> None:
        try:
            await self.process_queue()
        except Exception:
            logger.exception("E-mail sweep failed")

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._sweeps.add(task)
        task.add_done_callback(self._sweeps.discard)
