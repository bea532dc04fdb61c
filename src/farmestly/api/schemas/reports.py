"""Schemas for /report endpoints. JSON uses camelCase field names."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportCreateRequest(CamelModel):
    report_type: str = "chronological"
    date_range: str = "all"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    delivery: Optional[str] = None


class ReportCreateResponse(CamelModel):
    job_id: str
    message: str = "Report generation started"


class PrecheckResponse(CamelModel):
    can_email: bool
    can_download: bool
    email_not_verified: bool
    record_count: int


class ReportResult(CamelModel):
    download_url: Optional[str] = None
    email_sent: bool = False


class ReportStatusResponse(CamelModel):
    job_id: str
    status: str
    delivery: str
    created_at: datetime
    result: Optional[ReportResult] = None
    error: Optional[str] = None


class LatestReport(CamelModel):
    job_id: str
    created_at: datetime
    download_url: str
    report_type: str
    date_range: str


class LatestReportResponse(CamelModel):
    report: Optional[LatestReport] = None
