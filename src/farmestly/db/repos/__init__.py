from farmestly.db.repos.account_repo import AccountRepo, FarmLookups
from farmestly.db.repos.job_record_repo import JobRecordRepo
from farmestly.db.repos.report_job_repo import ReportJobRepo

__all__ = ["AccountRepo", "FarmLookups", "JobRecordRepo", "ReportJobRepo"]
