"""
Date range normalization and time bucketing.

Turns nominal dates or relative windows into a canonical DateRange whose
bounds cover whole calendar days in the report timezone, and produces the
complete, ordered list of hour/day/ISO-week/month bucket keys for a range.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Optional, List, Union
from zoneinfo import ZoneInfo

from core.config import REPORT_TIMEZONE

DateLike = Union[date, datetime, str]

END_OF_DAY = time(23, 59, 59, 999000)


class Granularity(str, Enum):
    """Bucket sizes."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def from_period(cls, period: str) -> "Granularity":
        """Map a trend period (daily/weekly/monthly) to a bucket size."""
        return {
            "daily": cls.DAY,
            "weekly": cls.WEEK,
            "monthly": cls.MONTH,
        }[period]


@dataclass
class DateRange:
    """Inclusive range of calendar days in a given timezone."""
    start: date
    end: date
    tz_name: str = "UTC"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.tz_name)

    @property
    def start_str(self) -> str:
        """Start date as YYYY-MM-DD string."""
        return self.start.strftime("%Y-%m-%d")

    @property
    def end_str(self) -> str:
        """End date as YYYY-MM-DD string."""
        return self.end.strftime("%Y-%m-%d")

    @property
    def start_utc(self) -> datetime:
        """00:00:00.000 of the first day, in UTC."""
        return datetime.combine(self.start, time.min, tzinfo=self.tz).astimezone(timezone.utc)

    @property
    def end_utc(self) -> datetime:
        """23:59:59.999 of the last day, in UTC."""
        return datetime.combine(self.end, END_OF_DAY, tzinfo=self.tz).astimezone(timezone.utc)

    @property
    def days(self) -> int:
        """Number of calendar days covered."""
        return (self.end - self.start).days + 1


def to_date(value: DateLike, tz_name: str = REPORT_TIMEZONE) -> date:
    """Coerce a date, datetime or YYYY-MM-DD / ISO string to a calendar date."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(ZoneInfo(tz_name))
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) == 10:
        return datetime.strptime(text, "%Y-%m-%d").date()
    return to_date(datetime.fromisoformat(text.replace("Z", "+00:00")), tz_name)


def today(tz_name: str = REPORT_TIMEZONE) -> date:
    """Current calendar date in the report timezone."""
    return datetime.now(ZoneInfo(tz_name)).date()


def normalize_range(
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
    tz_name: str = REPORT_TIMEZONE,
    reference_date: Optional[date] = None,
) -> DateRange:
    """
    Build a canonical whole-day DateRange.

    Missing bounds default to the reference date (today). Bounds given in the
    wrong order are swapped.

    Examples:
        >>> r = normalize_range("2026-03-05", "2026-03-01")
        >>> (r.start_str, r.end_str)
        ('2026-03-01', '2026-03-05')
    """
    fallback = reference_date or today(tz_name)
    start_day = to_date(start, tz_name) if start else None
    end_day = to_date(end, tz_name) if end else None

    start_day = start_day or end_day or fallback
    end_day = end_day or start_day

    if start_day > end_day:
        start_day, end_day = end_day, start_day

    return DateRange(start_day, end_day, tz_name)


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the month's last day."""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    next_month = date(year + (month // 12), month % 12 + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return date(year, month, min(day.day, last_day))


def relative_range(
    days: Optional[int] = None,
    weeks: Optional[int] = None,
    months: Optional[int] = None,
    tz_name: str = REPORT_TIMEZONE,
    reference_date: Optional[date] = None,
) -> DateRange:
    """
    Range ending on the reference date covering the last N days, weeks or months.

    ``relative_range(weeks=2)`` covers 14 days including the reference date;
    ``relative_range(months=3)`` starts on the first day of the month two
    months before the reference month.
    """
    end_day = reference_date or today(tz_name)

    if months:
        start_day = add_months(end_day.replace(day=1), -(months - 1))
    else:
        span = (days or 0) + (weeks or 0) * 7
        start_day = end_day - timedelta(days=max(span, 1) - 1)

    return DateRange(start_day, end_day, tz_name)


# ═══════════════════════════════════════════════════════════════════════════════
# BUCKET KEYS
# ═══════════════════════════════════════════════════════════════════════════════

def local_time(moment: datetime, tz_name: str = REPORT_TIMEZONE) -> datetime:
    """Convert to the report timezone (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name))


def hour_key(hour: int) -> str:
    return f"{hour:02d}:00"


def day_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def week_key(day: date) -> str:
    """ISO-8601 week label, e.g. 2026-W01 (year of the week's Thursday)."""
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_key(day: date) -> str:
    return day.strftime("%Y-%m")


def bucket_key(moment: datetime, granularity: Granularity, tz_name: str = REPORT_TIMEZONE) -> str:
    """Bucket label for a timestamp."""
    local = local_time(moment, tz_name)
    if granularity is Granularity.HOUR:
        return hour_key(local.hour)
    if granularity is Granularity.DAY:
        return day_key(local.date())
    if granularity is Granularity.WEEK:
        return week_key(local.date())
    return month_key(local.date())


def iter_days(date_range: DateRange):
    current = date_range.start
    while current <= date_range.end:
        yield current
        current += timedelta(days=1)


def bucket_keys(date_range: DateRange, granularity: Granularity) -> List[str]:
    """
    Every bucket key in the range, in chronological order.

    Hour buckets are hour-of-day slots, so there are always 24.
    """
    if granularity is Granularity.HOUR:
        return [hour_key(h) for h in range(24)]

    key_func = {
        Granularity.DAY: day_key,
        Granularity.WEEK: week_key,
        Granularity.MONTH: month_key,
    }[granularity]

    keys: List[str] = []
    for day in iter_days(date_range):
        key = key_func(day)
        if not keys or keys[-1] != key:
            keys.append(key)
    return keys
