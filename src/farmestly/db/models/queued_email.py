"""Outbound e-mail queue rows. Only the e-mail store writes to this table."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farmestly.db.session import Base, TimestampMixin, UUIDPrimaryKey
from farmestly.domain.clock import utcnow
from farmestly.domain.enums import EmailStatus


class QueuedEmail(UUIDPrimaryKey, TimestampMixin, Base):
    __tablename__ = "email_queue"
    __table_args__ = (
        Index("ix_email_queue_status_scheduled", "status", "scheduled_for"),
        Index("ix_email_queue_sent_at", "sent_at"),
    )

    to_address: Mapped[str] = mapped_column(String(320))
    from_address: Mapped[str] = mapped_column(String(320))
    subject: Mapped[str] = mapped_column(String(998))
    html: Mapped[str] = mapped_column(Text)
    text: Mapped[str] = mapped_column(Text, default="")
    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)  # content is base64
    status: Mapped[str] = mapped_column(String(20), default=EmailStatus.PENDING.value)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=5)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    scheduled_for: Mapped[datetime] = mapped_column(default=utcnow)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(default=None)
    sent_at: Mapped[Optional[datetime]] = mapped_column(default=None)
    failed_at: Mapped[Optional[datetime]] = mapped_column(default=None)
    message_id: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    error: Mapped[Optional[str]] = mapped_column(Text, default=None)
    extra: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
