"""Next-run calculation for recurring report schedules."""

from datetime import datetime, timedelta

from report_engine.core.datetime_utils import add_months, utc_now
from report_engine.core.logging import get_logger
from report_engine.models.schedule import ReportFrequency

logger = get_logger(__name__)


def _as_frequency(frequency: ReportFrequency | str) -> ReportFrequency | None:
    if isinstance(frequency, ReportFrequency):
        return frequency
    try:
        return ReportFrequency(frequency)
    except ValueError:
        return None


def calculate_next_run(
    frequency: ReportFrequency | str,
    now: datetime | None = None,
) -> datetime:
    """Get the next due time for a schedule that just ran.

    Daily adds one day, weekly seven days, monthly one calendar month
    (day clamped to the end of the target month). Unknown frequencies
    fall back to daily.

    Args:
        frequency: Schedule frequency, enum or raw string
        now: Reference time, defaults to current UTC time

    Returns:
        Naive UTC datetime of the next run
    """
    now = now or utc_now()
    resolved = _as_frequency(frequency)

    if resolved is ReportFrequency.WEEKLY:
        return now + timedelta(days=7)
    if resolved is ReportFrequency.MONTHLY:
        return add_months(now, 1)
    if resolved is None:
        logger.bind(frequency=str(frequency)).warning("unknown_frequency_defaulting_to_daily")
    return now + timedelta(days=1)
