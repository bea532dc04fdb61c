from farmestly.domain.enums.email import EmailStatus
from farmestly.domain.enums.farm import FarmAssetType
from farmestly.domain.enums.report import DateRange, DeliveryType, ReportErrorCode, ReportJobStatus, ReportType

__all__ = [
    "DateRange",
    "DeliveryType",
    "EmailStatus",
    "FarmAssetType",
    "ReportErrorCode",
    "ReportJobStatus",
    "ReportType",
]
