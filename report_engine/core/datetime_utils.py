"""Centralized datetime utilities for consistent timezone handling.

All functions return naive UTC datetimes for database compatibility
(SQLAlchemy models use naive UTC).

Usage:
    from report_engine.core.datetime_utils import add_months, get_cutoff, utc_now

    # Current time
    now = utc_now()

    # Calendar arithmetic
    window_start = add_months(now, -1)

    # Cutoff for queries
    cutoff = get_cutoff(days=30)
    rows = query.filter(ReportHistory.created_at >= cutoff)
"""

import calendar
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    Replaces deprecated datetime.utcnow().
    """
    return datetime.now(UTC).replace(tzinfo=None)


def get_cutoff(hours: int = 0, days: int = 0) -> datetime:
    """Get cutoff datetime for filtering queries.

    Args:
        hours: Hours to subtract from now
        days: Days to subtract from now

    Returns:
        Naive UTC datetime representing the cutoff point
    """
    delta = timedelta(hours=hours, days=days)
    return utc_now() - delta


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def add_months(dt: datetime, months: int) -> datetime:
    """Shift a datetime by whole calendar months.

    The day of month is clamped to the length of the target month, so
    Jan 31 + 1 month is Feb 28 (or 29), never a day in March. Time of day
    and tzinfo are preserved.

    Args:
        dt: Starting datetime
        months: Number of months to add (negative to go back)

    Returns:
        Shifted datetime
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)
