from datetime import UTC, datetime

from farmestly.domain.date_window import DateWindow, resolve_date_window
from farmestly.domain.enums import DateRange

NOW = datetime(2025, 5, 17, 14, 30)


class TestResolveDateWindow:
    def test_all_has_no_window(self):
        assert resolve_date_window(DateRange.ALL, now=NOW) is None

    def test_month_starts_on_first(self):
        window = resolve_date_window("month", now=NOW)
        assert window == DateWindow(datetime(2025, 5, 1), NOW)

    def test_quarter_goes_three_months_back(self):
        window = resolve_date_window("quarter", now=NOW)
        assert window.start == datetime(2025, 2, 1)

    def test_quarter_crosses_year_boundary(self):
        window = resolve_date_window("quarter", now=datetime(2025, 2, 10))
        assert window.start == datetime(2024, 11, 1)

    def test_year_starts_jan_first(self):
        window = resolve_date_window("year", now=NOW)
        assert window.start == datetime(2025, 1, 1)

    def test_custom_uses_explicit_bounds(self):
        window = resolve_date_window(
            "custom", start_date=datetime(2024, 3, 1), end_date=datetime(2024, 6, 30), now=NOW
        )
        assert window == DateWindow(datetime(2024, 3, 1), datetime(2024, 6, 30))

    def test_custom_without_start_defaults_to_jan_first(self):
        window = resolve_date_window("custom", now=NOW)
        assert window.start == datetime(2025, 1, 1)
        assert window.end == NOW

    def test_aware_dates_are_normalized_to_naive_utc(self):
        window = resolve_date_window(
            "custom", start_date=datetime(2024, 3, 1, tzinfo=UTC), now=datetime(2025, 1, 1, tzinfo=UTC)
        )
        assert window.start.tzinfo is None
        assert window.end == datetime(2025, 1, 1)

    def test_contains_is_inclusive(self):
        window = DateWindow(datetime(2025, 1, 1), datetime(2025, 1, 31))
        assert window.contains(datetime(2025, 1, 1))
        assert window.contains(datetime(2025, 1, 31))
        assert not window.contains(datetime(2025, 2, 1))
