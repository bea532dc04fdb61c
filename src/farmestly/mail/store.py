"""Persistent state of the outbound e-mail queue."""

import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from farmestly.db.models.queued_email import QueuedEmail
from farmestly.domain.clock import utcnow
from farmestly.domain.enums import EmailStatus
from farmestly.exceptions import EmailNotFound

_RETRYABLE = (EmailStatus.PENDING.value, EmailStatus.FAILED.value)


class SqlEmailStore:
    """E-mail queue rows in the ``email_queue`` table.

    Each call runs in its own short transaction so the sender never holds a
    connection across an SMTP round trip.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, email: QueuedEmail) -> uuid.UUID:
        async with self._session_factory() as session:
            session.add(email)
            await session.commit()
            return email.id

    async def get(self, email_id: uuid.UUID) -> QueuedEmail | None:
        async with self._session_factory() as session:
            return await session.get(QueuedEmail, email_id)

    async def get_pending(self, limit: int, now: datetime | None = None) -> list[QueuedEmail]:
        now = now or utcnow()
        stmt = (
            select(QueuedEmail)
            .where(
                QueuedEmail.status.in_(_RETRYABLE),
                QueuedEmail.scheduled_for <= now,
                QueuedEmail.attempts < QueuedEmail.max_attempts,
            )
            .order_by(QueuedEmail.priority.desc(), QueuedEmail.scheduled_for.asc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _update(self, email_id: uuid.UUID, **values: Any) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                update(QueuedEmail).where(QueuedEmail.id == email_id).values(updated_at=utcnow(), **values)
            )
            await session.commit()
            return result.rowcount

    async def mark_as_sending(self, email_id: uuid.UUID) -> None:
        await self._update(
            email_id,
            status=EmailStatus.SENDING.value,
            attempts=QueuedEmail.attempts + 1,
            last_attempt_at=utcnow(),
        )

    async def mark_as_sent(self, email_id: uuid.UUID, message_id: str | None) -> None:
        await self._update(
            email_id,
            status=EmailStatus.SENT.value,
            sent_at=utcnow(),
            message_id=message_id,
            error=None,
        )

    async def mark_as_failed(self, email_id: uuid.UUID, error: str, retry_delay_seconds: float) -> None:
        await self._update(
            email_id,
            status=EmailStatus.FAILED.value,
            error=error,
            scheduled_for=utcnow() + timedelta(seconds=retry_delay_seconds),
        )

    async def mark_as_permanently_failed(self, email_id: uuid.UUID, error: str) -> None:
        await self._update(
            email_id,
            status=EmailStatus.PERMANENTLY_FAILED.value,
            error=error,
            failed_at=utcnow(),
        )

    async def cleanup(self, retention_days: int, now: datetime | None = None) -> int:
        """Delete sent messages older than the retention window."""
        cutoff = (now or utcnow()) - timedelta(days=retention_days)
        async with self._session_factory() as session:
            result = await session.execute(
                delete(QueuedEmail).where(
                    QueuedEmail.status == EmailStatus.SENT.value,
                    QueuedEmail.sent_at < cutoff,
                )
            )
            await session.commit()
            return result.rowcount

    async def retry_failed(self, now: datetime | None = None) -> int:
        """Move failed messages whose backoff has elapsed back to pending."""
        now = now or utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                update(QueuedEmail)
                .where(
                    QueuedEmail.status == EmailStatus.FAILED.value,
                    QueuedEmail.attempts < QueuedEmail.max_attempts,
                    QueuedEmail.scheduled_for <= now,
                )
                .values(status=EmailStatus.PENDING.value, updated_at=now)
            )
            await session.commit()
            return result.rowcount

    async def retry_email(self, email_id: uuid.UUID) -> None:
        count = await self._update(
            email_id,
            status=EmailStatus.PENDING.value,
            attempts=0,
            error=None,
            scheduled_for=utcnow(),
        )
        if count == 0:
            raise EmailNotFound(f"E-mail {email_id} not found")

    async def get_stats(self) -> dict[str, Any]:
        stmt = select(
            QueuedEmail.status,
            func.count(QueuedEmail.id),
            func.min(QueuedEmail.created_at),
            func.max(QueuedEmail.created_at),
        ).group_by(QueuedEmail.status)
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()

        stats: dict[str, Any] = {"total": 0, "by_status": {}}
        for status, count, oldest, newest in rows:
            stats["by_status"][status] = {"count": count, "oldest": oldest, "newest": newest}
            stats["total"] += count
        return stats
