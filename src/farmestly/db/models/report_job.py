"""Report job records: one row per report request, polled by the client."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from farmestly.db.session import Base, TimestampMixin, UUIDPrimaryKey
from farmestly.domain.enums import DateRange, DeliveryType, ReportJobStatus, ReportType


class ReportJob(UUIDPrimaryKey, TimestampMixin, Base):
    __tablename__ = "report_jobs"
    __table_args__ = (Index("ix_report_jobs_account_status", "account_id", "status"),)

    job_id: Mapped[str] = mapped_column(String(36), unique=True)
    account_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("accounts.id"))
    status: Mapped[str] = mapped_column(String(20), default=ReportJobStatus.PENDING.value)
    delivery: Mapped[str] = mapped_column(String(20), default=DeliveryType.EMAIL.value)
    report_type: Mapped[str] = mapped_column(String(20), default=ReportType.CHRONOLOGICAL.value)
    date_range: Mapped[str] = mapped_column(String(20), default=DateRange.ALL.value)
    start_date: Mapped[Optional[datetime]] = mapped_column(default=None)
    end_date: Mapped[Optional[datetime]] = mapped_column(default=None)
    result: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)  # download_url / download_key / email_sent
    error: Mapped[Optional[str]] = mapped_column(String(100), default=None)

    @property
    def download_key(self) -> Optional[str]:
        return (self.result or {}).get("download_key")
