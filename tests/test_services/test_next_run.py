"""Tests for next-run calculation."""

from datetime import datetime

import pytest

from report_engine.models.schedule import ReportFrequency
from report_engine.services.next_run import calculate_next_run

NOW = datetime(2026, 3, 15, 6, 0, 0)


class TestCalculateNextRun:
    """Tests for calculate_next_run."""

    def test_daily_adds_one_day(self):
        assert calculate_next_run(ReportFrequency.DAILY, NOW) == datetime(2026, 3, 16, 6, 0, 0)

    def test_weekly_adds_seven_days(self):
        assert calculate_next_run(ReportFrequency.WEEKLY, NOW) == datetime(2026, 3, 22, 6, 0, 0)

    def test_monthly_adds_calendar_month(self):
        assert calculate_next_run(ReportFrequency.MONTHLY, NOW) == datetime(2026, 4, 15, 6, 0, 0)

    def test_monthly_clamps_day(self):
        """Jan 31 monthly should run next on Feb 28, not in March."""
        assert calculate_next_run(ReportFrequency.MONTHLY, datetime(2026, 1, 31)) == datetime(
            2026, 2, 28
        )

    @pytest.mark.parametrize("frequency", ["daily", "weekly", "monthly"])
    def test_accepts_raw_strings(self, frequency):
        """Raw string values should behave like the enum members."""
        assert calculate_next_run(frequency, NOW) == calculate_next_run(
            ReportFrequency(frequency), NOW
        )

    def test_unknown_frequency_defaults_to_daily(self):
        assert calculate_next_run("quarterly", NOW) == datetime(2026, 3, 16, 6, 0, 0)

    def test_is_deterministic(self):
        """Same inputs should always give the same result."""
        results = {calculate_next_run(ReportFrequency.WEEKLY, NOW) for _ in range(5)}
        assert len(results) == 1

    def test_defaults_to_now(self):
        """Without a reference time the result should be in the future."""
        before = datetime.now()
        assert calculate_next_run(ReportFrequency.DAILY) > before
