import uuid
from typing import AsyncGenerator

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from farmestly.container import Container
from farmestly.db.models.account import Account
from farmestly.db.repos.account_repo import AccountRepo
from farmestly.domain.enums import ReportErrorCode
from farmestly.report.jobs import ReportJobManager
from farmestly.report.storage import ReportStorage


@inject
async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(Provide[Container.session_factory]),
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@inject
def get_report_jobs(
    manager: ReportJobManager = Depends(Provide[Container.report_job_manager]),
) -> ReportJobManager:
    return manager


@inject
def get_storage(
    storage: ReportStorage = Depends(Provide[Container.report_storage]),
) -> ReportStorage:
    return storage


async def get_current_account(
    x_account_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """Account of the signed-in user, identified by the session layer's X-Account-Id header."""
    if not x_account_id:
        raise HTTPException(status_code=401, detail=ReportErrorCode.SIGNED_OUT.value)
    try:
        account_id = uuid.UUID(x_account_id)
    except ValueError:
        raise HTTPException(status_code=401, detail=ReportErrorCode.SIGNED_OUT.value)
    account = await AccountRepo(db).get_by_id(account_id)
    if account is None:
        raise HTTPException(status_code=401, detail=ReportErrorCode.SIGNED_OUT.value)
    return account
