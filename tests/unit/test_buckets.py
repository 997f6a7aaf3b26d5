"""
Tests for core.buckets module.
"""
import pytest
from datetime import date, datetime, timezone

from core.buckets import (
    DateRange,
    Granularity,
    add_months,
    bucket_key,
    bucket_keys,
    normalize_range,
    relative_range,
    to_date,
    week_key,
)


class TestNormalizeRange:
    """Tests for normalize_range function."""

    def test_single_day(self):
        """A single date expands to one whole day."""
        result = normalize_range("2026-03-10", tz_name="UTC")
        assert (result.start_str, result.end_str) == ("2026-03-10", "2026-03-10")
        assert result.start_utc == datetime(2026, 3, 10, 0, 0, tzinfo=timezone.utc)
        assert result.end_utc == datetime(2026, 3, 10, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_reversed_bounds_swapped(self):
        result = normalize_range("2026-03-05", "2026-03-01", tz_name="UTC")
        assert (result.start, result.end) == (date(2026, 3, 1), date(2026, 3, 5))

    def test_missing_bounds_use_reference(self):
        result = normalize_range(tz_name="UTC", reference_date=date(2026, 3, 10))
        assert (result.start, result.end) == (date(2026, 3, 10), date(2026, 3, 10))

    def test_timezone_shifts_utc_bounds(self):
        """Day bounds are local midnight converted to UTC."""
        result = normalize_range("2026-03-10", tz_name="Asia/Kolkata")
        assert result.start_utc == datetime(2026, 3, 9, 18, 30, tzinfo=timezone.utc)

    def test_days(self):
        assert normalize_range("2026-02-27", "2026-03-02", tz_name="UTC").days == 4


class TestToDate:
    """Tests for to_date function."""

    def test_string(self):
        assert to_date("2026-03-10") == date(2026, 3, 10)

    def test_iso_timestamp_converted_to_zone(self):
        """23:00 UTC is already the next day in India."""
        assert to_date("2026-03-10T23:00:00Z", "Asia/Kolkata") == date(2026, 3, 11)

    def test_date_passthrough(self):
        assert to_date(date(2026, 1, 1)) == date(2026, 1, 1)


class TestAddMonths:
    """Tests for add_months function."""

    def test_clamps_to_month_end(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)

    def test_leap_year(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_backwards_across_year(self):
        assert add_months(date(2026, 1, 15), -2) == date(2025, 11, 15)

    def test_into_december(self):
        assert add_months(date(2026, 11, 30), 1) == date(2026, 12, 30)


class TestRelativeRange:
    """Tests for relative_range function."""

    def test_weeks(self):
        result = relative_range(weeks=2, tz_name="UTC", reference_date=date(2026, 3, 10))
        assert result.start == date(2026, 2, 25)
        assert result.end == date(2026, 3, 10)
        assert result.days == 14

    def test_days(self):
        result = relative_range(days=7, tz_name="UTC", reference_date=date(2026, 3, 10))
        assert result.start == date(2026, 3, 4)

    def test_months_start_on_first(self):
        result = relative_range(months=3, tz_name="UTC", reference_date=date(2026, 3, 10))
        assert result.start == date(2026, 1, 1)
        assert result.end == date(2026, 3, 10)

    def test_zero_span_is_single_day(self):
        result = relative_range(tz_name="UTC", reference_date=date(2026, 3, 10))
        assert result.days == 1


class TestWeekKey:
    """Tests for ISO week labels."""

    def test_regular_week(self):
        assert week_key(date(2026, 3, 10)) == "2026-W11"

    def test_new_year_belongs_to_previous_iso_year(self):
        assert week_key(date(2021, 1, 1)) == "2020-W53"

    def test_late_december_belongs_to_next_iso_year(self):
        assert week_key(date(2024, 12, 30)) == "2025-W01"


class TestBucketKey:
    """Tests for bucket_key function."""

    def test_hour(self):
        moment = datetime(2026, 3, 10, 9, 45, tzinfo=timezone.utc)
        assert bucket_key(moment, Granularity.HOUR, "UTC") == "09:00"

    def test_hour_in_local_time(self):
        moment = datetime(2026, 3, 10, 9, 45, tzinfo=timezone.utc)
        assert bucket_key(moment, Granularity.HOUR, "Asia/Kolkata") == "15:00"

    def test_month(self):
        moment = datetime(2026, 3, 31, 23, 0, tzinfo=timezone.utc)
        assert bucket_key(moment, Granularity.MONTH, "UTC") == "2026-03"
        assert bucket_key(moment, Granularity.MONTH, "Asia/Kolkata") == "2026-04"


class TestBucketKeys:
    """Tests for bucket_keys function."""

    def test_hour_always_24(self):
        keys = bucket_keys(DateRange(date(2026, 3, 10), date(2026, 3, 12)), Granularity.HOUR)
        assert len(keys) == 24
        assert keys[0] == "00:00"
        assert keys[-1] == "23:00"

    def test_days_inclusive(self):
        keys = bucket_keys(DateRange(date(2026, 2, 27), date(2026, 3, 2)), Granularity.DAY)
        assert keys == ["2026-02-27", "2026-02-28", "2026-03-01", "2026-03-02"]

    def test_weeks_deduplicated(self):
        keys = bucket_keys(DateRange(date(2026, 3, 1), date(2026, 3, 10)), Granularity.WEEK)
        assert keys == ["2026-W09", "2026-W10", "2026-W11"]

    def test_months(self):
        keys = bucket_keys(DateRange(date(2025, 12, 15), date(2026, 2, 1)), Granularity.MONTH)
        assert keys == ["2025-12", "2026-01", "2026-02"]


class TestGranularity:
    """Tests for Granularity enum."""

    @pytest.mark.parametrize("period,expected", [
        ("daily", Granularity.DAY),
        ("weekly", Granularity.WEEK),
        ("monthly", Granularity.MONTH),
    ])
    def test_from_period(self, period, expected):
        assert Granularity.from_period(period) is expected
