from farmestly.db.models.account import Account
from farmestly.db.models.farm_asset import Attachment, FarmAsset, FarmField, Machine, Tool
from farmestly.db.models.job_record import JobRecord
from farmestly.db.models.queued_email import QueuedEmail
from farmestly.db.models.report_job import ReportJob

__all__ = [
    "Account",
    "Attachment",
    "FarmAsset",
    "FarmField",
    "JobRecord",
    "Machine",
    "QueuedEmail",
    "ReportJob",
    "Tool",
]
