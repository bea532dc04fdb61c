"""Report API: precheck, create, poll, latest and signed download."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from starlette.requests import Request
from starlette.responses import Response

from farmestly.api.deps import get_current_account, get_report_jobs, get_storage
from farmestly.api.schemas.reports import (
    LatestReport,
    LatestReportResponse,
    PrecheckResponse,
    ReportCreateRequest,
    ReportCreateResponse,
    ReportResult,
    ReportStatusResponse,
)
from farmestly.db.models.account import Account
from farmestly.domain.clock import to_naive_utc
from farmestly.domain.enums import DateRange, DeliveryType, ReportErrorCode, ReportJobStatus, ReportType
from farmestly.report.jobs import ReportJobManager, ReportParams
from farmestly.report.storage import ReportStorage

router = APIRouter(prefix="/report", tags=["reports"])

AccountDep = Annotated[Account, Depends(get_current_account)]
JobsDep = Annotated[ReportJobManager, Depends(get_report_jobs)]
StorageDep = Annotated[ReportStorage, Depends(get_storage)]


def _bad_request(code: ReportErrorCode) -> HTTPException:
    return HTTPException(status_code=400, detail=code.value)


def _parse_enum(enum_cls: type[Enum], value: str, code: ReportErrorCode):
    try:
        return enum_cls(value)
    except ValueError:
        raise _bad_request(code)


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(value))
    except ValueError:
        raise _bad_request(ReportErrorCode.INVALID_DATE)


@router.get("/precheck", response_model=PrecheckResponse)
async def precheck_report(
    account: AccountDep,
    jobs: JobsDep,
    report_type: str = Query(ReportType.CHRONOLOGICAL.value, alias="reportType"),
    date_range: str = Query(DateRange.ALL.value, alias="dateRange"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
) -> PrecheckResponse:
    """Tell the client which delivery modes are possible for these parameters."""
    _parse_enum(ReportType, report_type, ReportErrorCode.INVALID_REPORT_TYPE)
    window_range = _parse_enum(DateRange, date_range, ReportErrorCode.INVALID_DATE_RANGE)
    count = await jobs.count_records(account.id, window_range, _parse_date(start_date), _parse_date(end_date))

    limits = jobs.limits
    can_email = can_download = True
    email_not_verified = False
    if count == 0 or count > limits.max_records_total:
        can_email = can_download = False
    elif count > limits.max_email_attachment_records:
        can_email = False

    if can_email and (not account.email or not account.email_verified):
        can_email = False
        email_not_verified = bool(account.email)

    return PrecheckResponse(
        can_email=can_email,
        can_download=can_download,
        email_not_verified=email_not_verified,
        record_count=count,
    )


@router.post("", status_code=202, response_model=ReportCreateResponse)
async def create_report(
    body: ReportCreateRequest,
    background_tasks: BackgroundTasks,
    account: AccountDep,
    jobs: JobsDep,
    delivery: Optional[str] = Query(None),
) -> ReportCreateResponse:
    """Start a report job. Processing continues after the 202 response."""
    delivery_type = _parse_enum(
        DeliveryType, delivery or body.delivery or DeliveryType.EMAIL.value, ReportErrorCode.INVALID_DELIVERY_TYPE
    )
    if delivery_type in (DeliveryType.EMAIL, DeliveryType.BOTH):
        if not account.email:
            raise _bad_request(ReportErrorCode.EMAIL_REQUIRED)
        if not account.email_verified:
            raise _bad_request(ReportErrorCode.EMAIL_NOT_VERIFIED)

    params = ReportParams(
        delivery=delivery_type,
        report_type=_parse_enum(ReportType, body.report_type, ReportErrorCode.INVALID_REPORT_TYPE),
        date_range=_parse_enum(DateRange, body.date_range, ReportErrorCode.INVALID_DATE_RANGE),
        start_date=_parse_date(body.start_date),
        end_date=_parse_date(body.end_date),
    )
    job_id = await jobs.create_job(account.id, params)
    background_tasks.add_task(jobs.process_job, job_id, account.id)
    return ReportCreateResponse(job_id=job_id)


@router.get("/status/{job_id}", response_model=ReportStatusResponse)
async def get_report_status(job_id: str, account: AccountDep, jobs: JobsDep) -> ReportStatusResponse:
    job = await jobs.get_job_for_account(job_id, account.id)
    if job is None:
        raise HTTPException(status_code=404, detail=ReportErrorCode.JOB_NOT_FOUND.value)

    response = ReportStatusResponse(
        job_id=job.job_id,
        status=job.status,
        delivery=job.delivery,
        created_at=job.created_at,
    )
    if job.status == ReportJobStatus.COMPLETED.value:
        result = job.result or {}
        response.result = ReportResult(
            download_url=result.get("download_url"),
            email_sent=bool(result.get("email_sent")),
        )
    elif job.status == ReportJobStatus.FAILED.value:
        response.error = job.error
    return response


@router.get("/latest", response_model=LatestReportResponse)
async def get_latest_report(account: AccountDep, jobs: JobsDep) -> LatestReportResponse:
    """Most recent downloadable report with a freshly signed link."""
    job = await jobs.get_latest_completed(account.id)
    if job is None or not job.download_key:
        return LatestReportResponse(report=None)
    if not await jobs.artifact_exists(job.download_key):
        return LatestReportResponse(report=None)

    return LatestReportResponse(
        report=LatestReport(
            job_id=job.job_id,
            created_at=job.created_at,
            download_url=jobs.signed_url(job.download_key),
            report_type=job.report_type,
            date_range=job.date_range,
        )
    )


@router.get("/download/{key}")
async def download_report(key: str, request: Request, storage: StorageDep) -> Response:
    """Public: access is granted by the URL signature, not by the session."""
    if not storage.verify_request(request):
        raise HTTPException(status_code=403, detail=ReportErrorCode.INVALID_OR_EXPIRED_LINK.value)
    if not await storage.exists(key):
        raise HTTPException(status_code=404, detail=ReportErrorCode.FILE_NOT_FOUND.value)
    return storage.send_file(key)
