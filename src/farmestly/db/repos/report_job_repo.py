import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from farmestly.db.models.report_job import ReportJob
from farmestly.domain import job_state
from farmestly.domain.clock import utcnow
from farmestly.domain.enums import ReportJobStatus


def _values(statuses) -> list[str]:
    return [ReportJobStatus(s).value for s in statuses]


class ReportJobRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def cancel_active(self, account_id: uuid.UUID) -> int:
        """Cancel every pending/processing job of the account. Returns the number cancelled."""
        result = await self._session.execute(
            update(ReportJob)
            .where(
                ReportJob.account_id == account_id,
                ReportJob.status.in_(_values(job_state.sources_for(ReportJobStatus.CANCELLED))),
            )
            .values(status=ReportJobStatus.CANCELLED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def create(self, account_id: uuid.UUID, **params: Any) -> ReportJob:
        job = ReportJob(
            job_id=str(uuid.uuid4()),
            account_id=account_id,
            status=ReportJobStatus.PENDING.value,
            result={},
            **params,
        )
        self._session.add(job)
        await self._session.flush()
        return job

    async def get(self, job_id: str) -> Optional[ReportJob]:
        result = await self._session.execute(select(ReportJob).where(ReportJob.job_id == job_id))
        return result.scalar_one_or_none()

    async def get_status(self, job_id: str) -> Optional[ReportJobStatus]:
        result = await self._session.execute(select(ReportJob.status).where(ReportJob.job_id == job_id))
        status = result.scalar_one_or_none()
        return ReportJobStatus(status) if status is not None else None

    async def get_for_account(self, job_id: str, account_id: uuid.UUID) -> Optional[ReportJob]:
        result = await self._session.execute(
            select(ReportJob).where(ReportJob.job_id == job_id, ReportJob.account_id == account_id)
        )
        return result.scalar_one_or_none()

    async def get_latest_completed(self, account_id: uuid.UUID) -> Optional[ReportJob]:
        """Newest completed job of the account that produced a downloadable file."""
        result = await self._session.execute(
            select(ReportJob)
            .where(ReportJob.account_id == account_id, ReportJob.status == ReportJobStatus.COMPLETED.value)
            .order_by(ReportJob.created_at.desc())
        )
        for job in result.scalars():
            if job.download_key:
                return job
        return None

    async def transition(self, job_id: str, target: ReportJobStatus, **values: Any) -> bool:
        """Move a job into ``target`` if its current status allows it.

        The status check happens inside the UPDATE, so concurrent writers
        cannot both win. Returns False when the job was not in a legal
        source status (for example it was cancelled meanwhile).
        """
        sources = job_state.sources_for(target)
        result = await self._session.execute(
            update(ReportJob)
            .where(ReportJob.job_id == job_id, ReportJob.status.in_(_values(sources)))
            .values(status=ReportJobStatus(target).value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def record_cancelled_result(self, job_id: str, result: dict[str, Any]) -> bool:
        """Attach the delivery result to a job that was cancelled while it delivered."""
        outcome = await self._session.execute(
            update(ReportJob)
            .where(ReportJob.job_id == job_id, ReportJob.status == ReportJobStatus.CANCELLED.value)
            .values(result=result, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return outcome.rowcount == 1

    async def list_with_files_before(self, cutoff: datetime) -> list[ReportJob]:
        """Completed or cancelled jobs created before ``cutoff`` that left a stored file."""
        result = await self._session.execute(
            select(ReportJob).where(
                ReportJob.status.in_([ReportJobStatus.COMPLETED.value, ReportJobStatus.CANCELLED.value]),
                ReportJob.created_at < cutoff,
            )
        )
        return [job for job in result.scalars() if job.download_key]

    async def delete_terminal_before(self, cutoff: datetime) -> int:
        result = await self._session.execute(
            delete(ReportJob)
            .where(
                ReportJob.status.in_(_values(job_state.TERMINAL_STATUSES)),
                ReportJob.created_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
