"""Date-range policy shared by report precheck and report processing."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from farmestly.domain.clock import to_naive_utc, utcnow
from farmestly.domain.enums import DateRange


@dataclass(frozen=True)
class DateWindow:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def _months_back(now: datetime, months: int) -> datetime:
    month_index = now.year * 12 + (now.month - 1) - months
    return datetime(month_index // 12, month_index % 12 + 1, 1)


def resolve_date_window(
    date_range: DateRange | str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Optional[DateWindow]:
    """Translate a report date range into an inclusive [start, end] window.

    Returns None for ``all`` (no filter). The window ends at ``end_date`` when
    one was given, otherwise at ``now``. ``custom`` without a start begins on
    January 1 of the current year.
    """
    now = to_naive_utc(now) if now is not None else utcnow()
    date_range = DateRange(date_range)

    if date_range == DateRange.ALL:
        return None
    if date_range == DateRange.MONTH:
        start = datetime(now.year, now.month, 1)
    elif date_range == DateRange.QUARTER:
        start = _months_back(now, 3)
    elif date_range == DateRange.YEAR:
        start = datetime(now.year, 1, 1)
    else:
        start = to_naive_utc(start_date) if start_date is not None else datetime(now.year, 1, 1)

    end = to_naive_utc(end_date) if end_date is not None else now
    return DateWindow(start=start, end=end)
