import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from farmestly.db.models.job_record import JobRecord
from farmestly.domain.date_window import DateWindow


class JobRecordRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _scoped(self, stmt, account_id: uuid.UUID, window: Optional[DateWindow]):
        stmt = stmt.where(JobRecord.account_id == account_id)
        if window is not None:
            stmt = stmt.where(JobRecord.start_time >= window.start, JobRecord.start_time <= window.end)
        return stmt

    async def count(self, account_id: uuid.UUID, window: Optional[DateWindow]) -> int:
        stmt = self._scoped(select(func.count(JobRecord.id)), account_id, window)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def list_newest_first(
        self, account_id: uuid.UUID, window: Optional[DateWindow], limit: int
    ) -> list[JobRecord]:
        stmt = self._scoped(select(JobRecord), account_id, window)
        result = await self._session.execute(stmt.order_by(JobRecord.start_time.desc()).limit(limit))
        return list(result.scalars().all())
