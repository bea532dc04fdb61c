import uuid
from datetime import timedelta

from farmestly.db.models.account import Account
from farmestly.db.models.farm_asset import FarmField, Machine
from farmestly.db.repos.account_repo import AccountRepo
from farmestly.db.repos.report_job_repo import ReportJobRepo
from farmestly.domain.clock import utcnow
from farmestly.domain.enums import ReportJobStatus


async def _account(session) -> uuid.UUID:
    account = Account(id=uuid.uuid4(), farm_name="Green Acres")
    session.add(account)
    await session.flush()
    return account.id


class TestReportJobRepo:
    async def test_transition_is_guarded(self, session):
        repo = ReportJobRepo(session)
        job = await repo.create(await _account(session))

        assert await repo.transition(job.job_id, ReportJobStatus.COMPLETED) is False
        assert await repo.transition(job.job_id, ReportJobStatus.PROCESSING) is True
        assert await repo.transition(job.job_id, ReportJobStatus.PROCESSING) is False
        assert await repo.transition(job.job_id, ReportJobStatus.COMPLETED, result={"email_sent": True}) is True
        assert await repo.transition(job.job_id, ReportJobStatus.CANCELLED) is False
        assert await repo.get_status(job.job_id) == ReportJobStatus.COMPLETED

    async def test_cancel_active_leaves_terminal_jobs(self, session):
        repo = ReportJobRepo(session)
        account_id = await _account(session)
        done = await repo.create(account_id)
        await repo.transition(done.job_id, ReportJobStatus.PROCESSING)
        await repo.transition(done.job_id, ReportJobStatus.FAILED, error="RENDER_FAILED")
        await repo.create(account_id)
        await repo.create(account_id)

        assert await repo.cancel_active(account_id) == 2
        assert await repo.get_status(done.job_id) == ReportJobStatus.FAILED

    async def test_latest_completed_needs_file(self, session):
        repo = ReportJobRepo(session)
        account_id = await _account(session)
        job = await repo.create(account_id)
        await repo.transition(job.job_id, ReportJobStatus.PROCESSING)
        await repo.transition(job.job_id, ReportJobStatus.COMPLETED, result={"email_sent": True})

        assert await repo.get_latest_completed(account_id) is None

    async def test_unknown_job(self, session):
        assert await ReportJobRepo(session).get_status("missing") is None


class TestAccountRepo:
    async def test_lookups_by_asset_type(self, session):
        account_id = await _account(session)
        field = FarmField(id=uuid.uuid4(), account_id=account_id, name="North Field")
        machine = Machine(id=uuid.uuid4(), account_id=account_id, name="Tractor")
        session.add_all([field, machine])
        await session.flush()

        lookups = await AccountRepo(session).get_lookups(account_id)
        assert lookups.fields == {field.id: "North Field"}
        assert lookups.machines == {machine.id: "Tractor"}
        assert lookups.tools == {}


class TestCancelledResults:
    async def test_cancelled_row_with_file_is_listed(self, session):
        repo = ReportJobRepo(session)
        account_id = await _account(session)
        job = await repo.create(account_id)
        await repo.transition(job.job_id, ReportJobStatus.PROCESSING)
        await repo.cancel_active(account_id)

        assert await repo.record_cancelled_result(job.job_id, {"download_key": "Farm_Report.pdf"}) is True
        listed = await repo.list_with_files_before(utcnow() + timedelta(minutes=1))
        assert [j.job_id for j in listed] == [job.job_id]

    async def test_result_not_written_to_active_job(self, session):
        repo = ReportJobRepo(session)
        job = await repo.create(await _account(session))

        assert await repo.record_cancelled_result(job.job_id, {"download_key": "x.pdf"}) is False
