"""Field job records: the farm activity a report is built from."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farmestly.db.session import Base, TimestampMixin, UUIDPrimaryKey


class JobRecord(UUIDPrimaryKey, TimestampMixin, Base):
    """One recorded field job (sowing, spraying, harvest, ...)."""

    __tablename__ = "job_records"
    __table_args__ = (Index("ix_job_records_account_start", "account_id", "start_time"),)

    account_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("accounts.id"))
    job_type: Mapped[str] = mapped_column(String(50))
    job_title: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    field_id: Mapped[Optional[uuid.UUID]] = mapped_column(default=None)
    machine_id: Mapped[Optional[uuid.UUID]] = mapped_column(default=None)
    machine_name: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    attachment_id: Mapped[Optional[uuid.UUID]] = mapped_column(default=None)
    tool_id: Mapped[Optional[uuid.UUID]] = mapped_column(default=None)
    start_time: Mapped[datetime]
    end_time: Mapped[Optional[datetime]] = mapped_column(default=None)
    elapsed_ms: Mapped[Optional[int]] = mapped_column(BigInteger, default=None)  # always milliseconds
    notes: Mapped[Optional[str]] = mapped_column(Text, default=None)

    @property
    def duration_ms(self) -> Optional[int]:
        """Recorded elapsed time, falling back to end - start."""
        if self.elapsed_ms is not None and self.elapsed_ms > 0:
            return self.elapsed_ms
        if self.end_time is not None and self.start_time is not None:
            return int((self.end_time - self.start_time).total_seconds() * 1000)
        return None
