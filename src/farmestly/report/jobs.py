"""Report job lifecycle: create, process in the background, deliver, clean up."""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from farmestly.db.models.report_job import ReportJob
from farmestly.db.repos.account_repo import AccountRepo
from farmestly.db.repos.job_record_repo import JobRecordRepo
from farmestly.db.repos.report_job_repo import ReportJobRepo
from farmestly.domain.clock import utcnow
from farmestly.domain.date_window import resolve_date_window
from farmestly.domain.enums import DateRange, DeliveryType, ReportErrorCode, ReportJobStatus, ReportType
from farmestly.exceptions import FarmestlyError, ReportError
from farmestly.mail.queue import EmailQueue
from farmestly.report.email_body import build_report_email_html, report_email_subject
from farmestly.report.render_pool import RenderOptions, RenderPool
from farmestly.report.storage import ReportStorage, sanitize_key
from farmestly.report.templates import render_report_html

logger = logging.getLogger(__name__)

JOB_RETENTION = timedelta(hours=24)


@dataclass(frozen=True)
class ReportLimits:
    max_records_total: int = 10000
    max_email_attachment_records: int = 500
    job_retention_hours: int = 24


@dataclass(frozen=True)
class ReportParams:
    delivery: DeliveryType = DeliveryType.EMAIL
    report_type: ReportType = ReportType.CHRONOLOGICAL
    date_range: DateRange = DateRange.ALL
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: ReportJob) -> "ReportParams":
        return cls(
            delivery=DeliveryType(job.delivery),
            report_type=ReportType(job.report_type),
            date_range=DateRange(job.date_range),
            start_date=job.start_date,
            end_date=job.end_date,
        )


def build_report_filename(farm_name: str, generated_at: datetime, job_id: str) -> str:
    """``<Farm_Name>_Report_<UTC timestamp>_<job prefix>.pdf`` in the storage key alphabet."""
    farm = re.sub(r"\s+", "_", (farm_name or "").strip()) or "Farm"
    stamp = generated_at.strftime("%Y-%m-%dT%H-%M-%S")
    return sanitize_key(f"{farm}_Report_{stamp}_{job_id[:8]}.pdf")


async def cleanup_expired_jobs(
    session_factory: async_sessionmaker[AsyncSession],
    storage: ReportStorage,
    now: Optional[datetime] = None,
    retention: timedelta = JOB_RETENTION,
) -> dict[str, int]:
    """Delete expired report files and old terminal jobs. Safe to run repeatedly."""
    now = now or utcnow()
    deleted_files = 0
    deleted_records = 0

    try:
        async with session_factory() as session:
            expired = await ReportJobRepo(session).list_with_files_before(now - storage.default_expiry)
            keys = [job.download_key for job in expired]
    except Exception:
        logger.exception("Could not list expired report files")
        keys = []

    for key in keys:
        try:
            if await storage.delete(key):
                deleted_files += 1
        except Exception:
            logger.exception("Could not delete expired report file %s", key)

    try:
        async with session_factory() as session:
            deleted_records = await ReportJobRepo(session).delete_terminal_before(now - retention)
            await session.commit()
    except Exception:
        logger.exception("Could not delete old report jobs")

    if deleted_files or deleted_records:
        logger.info("Report cleanup removed %d file(s) and %d job(s)", deleted_files, deleted_records)
    return {"deleted_files": deleted_files, "deleted_records": deleted_records}


class ReportJobManager:
    """Owns report jobs from request to delivery.

    ``create_job`` is called from the request handler and returns at once.
    ``process_job`` runs afterwards in the background and never raises: any
    failure ends up as a ``failed`` job with an error code. A job superseded
    by a newer request is noticed at the checkpoints between the slow steps
    and processing stops quietly.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: ReportStorage,
        render_pool: RenderPool,
        email_queue: EmailQueue,
        limits: ReportLimits = ReportLimits(),
    ) -> None:
        self._session_factory = session_factory
        self._storage = storage
        self._render_pool = render_pool
        self._email_queue = email_queue
        self._limits = limits

    @property
    def limits(self) -> ReportLimits:
        return self._limits

    # Requests

    async def create_job(self, account_id: uuid.UUID, params: ReportParams) -> str:
        """Supersede the account's active jobs and insert a new pending one."""
        async with self._session_factory() as session:
            repo = ReportJobRepo(session)
            cancelled = await repo.cancel_active(account_id)
            job = await repo.create(
                account_id,
                delivery=DeliveryType(params.delivery).value,
                report_type=ReportType(params.report_type).value,
                date_range=DateRange(params.date_range).value,
                start_date=params.start_date,
                end_date=params.end_date,
            )
            await session.commit()
        if cancelled:
            logger.info("Report job %s superseded %d active job(s) of account %s", job.job_id, cancelled, account_id)
        logger.info("Created report job %s (%s, %s)", job.job_id, params.report_type, params.delivery)
        return job.job_id

    async def get_job_for_account(self, job_id: str, account_id: uuid.UUID) -> Optional[ReportJob]:
        async with self._session_factory() as session:
            return await ReportJobRepo(session).get_for_account(job_id, account_id)

    async def get_latest_completed(self, account_id: uuid.UUID) -> Optional[ReportJob]:
        async with self._session_factory() as session:
            return await ReportJobRepo(session).get_latest_completed(account_id)

    async def count_records(
        self,
        account_id: uuid.UUID,
        date_range: DateRange,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> int:
        window = resolve_date_window(date_range, start_date, end_date)
        async with self._session_factory() as session:
            return await JobRecordRepo(session).count(account_id, window)

    def signed_url(self, key: str) -> str:
        return self._storage.get_signed_url(key)

    async def artifact_exists(self, key: str) -> bool:
        return await self._storage.exists(key)

    async def cleanup_expired_jobs(self) -> dict[str, int]:
        return await cleanup_expired_jobs(
            self._session_factory,
            self._storage,
            retention=timedelta(hours=self._limits.job_retention_hours),
        )

    # Background processing

    async def process_job(self, job_id: str, account_id: uuid.UUID) -> None:
        try:
            await self._process(job_id, account_id)
        except FarmestlyError as exc:
            logger.warning("Report job %s failed: %s (%s)", job_id, exc.code, exc)
            await self._record_failure(job_id, exc.code)
        except Exception:
            logger.exception("Report job %s crashed", job_id)
            await self._record_failure(job_id, "INTERNAL_ERROR")

    async def _process(self, job_id: str, account_id: uuid.UUID) -> None:
        limits = self._limits

        async with self._session_factory() as session:
            jobs = ReportJobRepo(session)
            job = await jobs.get(job_id)
            if job is None or job.account_id != account_id:
                logger.warning("Report job %s not found for account %s", job_id, account_id)
                return
            if job.status != ReportJobStatus.PENDING.value:
                logger.info("Report job %s is %s, not processing", job_id, job.status)
                return
            params = ReportParams.from_job(job)
            if not await jobs.transition(job_id, ReportJobStatus.PROCESSING):
                await session.rollback()
                logger.info("Report job %s was superseded before it started", job_id)
                return
            await session.commit()
            logger.info("Processing report job %s", job_id)

            accounts = AccountRepo(session)
            account = await accounts.get_by_id(account_id)
            if account is None:
                raise ReportError(ReportErrorCode.ACCOUNT_NOT_FOUND.value)
            farm_name = account.farm_name or "Farm"
            farm_logo = account.farm_logo
            recipient = account.email
            if params.delivery == DeliveryType.EMAIL and not recipient:
                raise ReportError(ReportErrorCode.EMAIL_REQUIRED.value)

            window = resolve_date_window(params.date_range, params.start_date, params.end_date)
            records_repo = JobRecordRepo(session)
            count = await records_repo.count(account_id, window)
            if count > limits.max_records_total:
                raise ReportError(ReportErrorCode.TOO_MANY_RECORDS.value)
            if params.delivery == DeliveryType.EMAIL and count > limits.max_email_attachment_records:
                raise ReportError(ReportErrorCode.TOO_MANY_RECORDS_FOR_EMAIL.value)

            records = await records_repo.list_newest_first(account_id, window, limits.max_records_total)
            lookups = await accounts.get_lookups(account_id)

        if not await self._still_processing(job_id):
            return

        generated_at = utcnow()
        html = render_report_html(params.report_type, params.date_range, farm_name, records, lookups, generated_at)
        pdf = await self._render_pool.submit(html, RenderOptions(show_page_numbers=True))

        if not await self._still_processing(job_id):
            return

        can_attach = count <= limits.max_email_attachment_records
        wants_email = params.delivery in (DeliveryType.EMAIL, DeliveryType.BOTH)
        needs_file = params.delivery in (DeliveryType.DOWNLOAD, DeliveryType.BOTH) or (wants_email and not can_attach)

        result: dict[str, Any] = {"email_sent": False}
        filename = build_report_filename(farm_name, generated_at, job_id)
        if needs_file:
            key = await self._storage.save(filename, pdf)
            result["download_key"] = key
            result["download_url"] = self._storage.get_signed_url(key)

        if wants_email and recipient:
            try:
                await self._email_report(
                    recipient,
                    farm_name,
                    farm_logo,
                    params,
                    generated_at,
                    attachment=(filename, pdf) if can_attach else None,
                    download_url=None if can_attach else result.get("download_url"),
                )
                result["email_sent"] = True
            except Exception as exc:
                if params.delivery != DeliveryType.BOTH:
                    raise
                code = exc.code if isinstance(exc, FarmestlyError) else "EMAIL_ENQUEUE_FAILED"
                logger.warning("Report job %s: e-mail not queued (%s), download link still delivered", job_id, code)
                result["email_error"] = code

        async with self._session_factory() as session:
            jobs = ReportJobRepo(session)
            completed = await jobs.transition(job_id, ReportJobStatus.COMPLETED, result=result)
            # the cancelled row keeps the key so cleanup removes the file once its links expire
            kept = not completed and needs_file and await jobs.record_cancelled_result(job_id, result)
            await session.commit()
        if completed:
            logger.info("Report job %s completed (%d records, email_sent=%s)", job_id, count, result["email_sent"])
            return
        logger.info("Report job %s was cancelled during delivery, keeping it cancelled", job_id)
        if needs_file and not kept:
            await self._storage.delete(result["download_key"])
            logger.info("Deleted report file %s of cancelled job %s", result["download_key"], job_id)

    async def _email_report(
        self,
        recipient: str,
        farm_name: str,
        farm_logo: Optional[str],
        params: ReportParams,
        generated_at: datetime,
        attachment: Optional[tuple[str, bytes]],
        download_url: Optional[str],
    ) -> str:
        html = build_report_email_html(
            farm_name,
            params.report_type,
            params.date_range,
            generated_at,
            farm_logo=farm_logo,
            download_url=download_url,
            expiry_minutes=int(self._storage.default_expiry.total_seconds() // 60),
        )
        attachments = []
        if attachment is not None:
            filename, content = attachment
            attachments.append({"filename": filename, "content": content, "content_type": "application/pdf"})
        return await self._email_queue.enqueue(
            to=recipient,
            subject=report_email_subject(farm_name, generated_at),
            html=html,
            attachments=attachments,
            priority=1,
        )

    async def _still_processing(self, job_id: str) -> bool:
        async with self._session_factory() as session:
            status = await ReportJobRepo(session).get_status(job_id)
        if status != ReportJobStatus.PROCESSING:
            logger.info("Report job %s is %s, stopping", job_id, status.value if status else "gone")
            return False
        return True

    async def _record_failure(self, job_id: str, code: str) -> None:
        try:
            async with self._session_factory() as session:
                failed = await ReportJobRepo(session).transition(job_id, ReportJobStatus.FAILED, error=code[:100])
                await session.commit()
        except Exception:
            logger.exception("Could not record failure %s for report job %s", code, job_id)
            return
        if not failed:
            logger.info("Report job %s no longer processing, failure %s not recorded", job_id, code)
