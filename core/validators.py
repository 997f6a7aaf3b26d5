"""
Input validation functions for report parameters.

These run in the calling layer before a report is requested.
All validators raise ValidationError on invalid input.
"""

import re
from datetime import date, datetime
from typing import Optional, Tuple

from core.exceptions import ValidationError


VALID_PERIODS = {"daily", "weekly", "monthly"}
VALID_REPORT_TYPES = {
    "daily_sales",
    "payment_analytics",
    "channel_performance",
    "low_stock",
    "customer_history",
    "sales_trend",
    "inventory_valuation",
    "dashboard",
}

# Maximum allowed values
MAX_RANGE_DAYS = 365
MIN_THRESHOLD, MAX_THRESHOLD = 0, 1000
MIN_LIMIT, MAX_LIMIT = 1, 1000
MIN_WEEKS, MAX_WEEKS = 1, 104
MAX_CUSTOMER_ID_LENGTH = 64

_CUSTOMER_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Args:
        value: Date string to validate
        field: Field name for error messages
        format: Expected date format (default: YYYY-MM-DD)

    Returns:
        Parsed date object

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_date_range(
    start_date: str,
    end_date: str,
    max_days: int = MAX_RANGE_DAYS
) -> Tuple[date, date]:
    """
    Validate a date range.

    Args:
        start_date: Start date string (YYYY-MM-DD)
        end_date: End date string (YYYY-MM-DD)
        max_days: Maximum allowed range in days

    Returns:
        Tuple of (start_date, end_date) as date objects

    Raises:
        ValidationError: If dates are invalid or range is too large
    """
    start = validate_date_string(start_date, "startDate")
    end = validate_date_string(end_date, "endDate")

    if start > end:
        raise ValidationError(
            "date_range",
            "startDate cannot be after endDate",
            f"{start_date} to {end_date}"
        )

    days_diff = (end - start).days
    if days_diff > max_days:
        raise ValidationError(
            "date_range",
            f"Date range cannot exceed {max_days} days",
            f"{days_diff} days"
        )

    return start, end


def _validate_int_range(value, field: str, min_value: int, max_value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "Must be an integer", value)

    if value < min_value:
        raise ValidationError(field, f"Must be at least {min_value}", value)

    if value > max_value:
        raise ValidationError(field, f"Cannot exceed {max_value}", value)

    return value


def validate_threshold(value: int, field: str = "threshold") -> int:
    """Validate a stock threshold (0-1000)."""
    return _validate_int_range(value, field, MIN_THRESHOLD, MAX_THRESHOLD)


def validate_limit(
    value: int,
    field: str = "limit",
    min_value: int = MIN_LIMIT,
    max_value: int = MAX_LIMIT
) -> int:
    """
    Validate a limit/count parameter.

    Raises:
        ValidationError: If limit is out of range
    """
    return _validate_int_range(value, field, min_value, max_value)


def validate_weeks(value: int, field: str = "weeks") -> int:
    """Validate a trend window length (1-104)."""
    return _validate_int_range(value, field, MIN_WEEKS, MAX_WEEKS)


def validate_period(
    value: Optional[str],
    field: str = "period",
    allow_none: bool = True
) -> Optional[str]:
    """
    Validate a trend period.

    Args:
        value: Period string to validate
        field: Field name for error messages
        allow_none: Whether None is allowed

    Returns:
        Validated lower-case period or None

    Raises:
        ValidationError: If period is invalid
    """
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(field, "Period is required")

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.lower().strip()

    if value not in VALID_PERIODS:
        raise ValidationError(
            field,
            f"Must be one of: {', '.join(sorted(VALID_PERIODS))}",
            value
        )

    return value


def validate_customer_id(
    value: Optional[str],
    field: str = "customerId",
    allow_none: bool = True
) -> Optional[str]:
    """
    Validate a customer identifier.

    Raises:
        ValidationError: If the identifier is malformed
    """
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(field, "Customer ID is required")

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.strip()

    if len(value) > MAX_CUSTOMER_ID_LENGTH:
        raise ValidationError(
            field,
            f"Cannot exceed {MAX_CUSTOMER_ID_LENGTH} characters",
            f"{len(value)} characters"
        )

    if not _CUSTOMER_ID_RE.match(value):
        raise ValidationError(field, "Invalid customer ID format", value)

    return value


def validate_report_type(value: str, field: str = "type") -> str:
    """Validate a report type name (accepts dashes or underscores)."""
    if not value or not isinstance(value, str):
        raise ValidationError(field, "Report type is required", value)

    normalized = value.strip().lower().replace("-", "_")
    if normalized not in VALID_REPORT_TYPES:
        raise ValidationError(
            field,
            f"Must be one of: {', '.join(sorted(VALID_REPORT_TYPES))}",
            value
        )
    return normalized
