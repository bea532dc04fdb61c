from enum import Enum


class ReportJobStatus(str, Enum):
    """Lifecycle of a report job. COMPLETED, FAILED and CANCELLED are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DeliveryType(str, Enum):
    EMAIL = "email"
    DOWNLOAD = "download"
    BOTH = "both"


class ReportType(str, Enum):
    """Grouping dimension of the rendered report."""

    CHRONOLOGICAL = "chronological"
    FIELD = "field"
    MACHINE = "machine"
    JOB_TYPE = "job_type"
    ATTACHMENT = "attachment"
    TOOL = "tool"


class DateRange(str, Enum):
    ALL = "all"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"


class ReportErrorCode(str, Enum):
    """Reason codes surfaced to the client on rejected or failed reports."""

    EMAIL_REQUIRED = "EMAIL_REQUIRED"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    INVALID_DELIVERY_TYPE = "INVALID_DELIVERY_TYPE"
    INVALID_REPORT_TYPE = "INVALID_REPORT_TYPE"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_DATE = "INVALID_DATE"
    TOO_MANY_RECORDS = "TOO_MANY_RECORDS"
    TOO_MANY_RECORDS_FOR_EMAIL = "TOO_MANY_RECORDS_FOR_EMAIL"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    SIGNED_OUT = "SIGNED_OUT"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    INVALID_OR_EXPIRED_LINK = "INVALID_OR_EXPIRED_LINK"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
