"""Tests for the polling cycle."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from report_engine.models.history import ReportStatus
from report_engine.services.cycle_runner import CycleRunner
from report_engine.services.failure_tracker import FailureTracker
from report_engine.services.report_executor import ReportExecutor
from tests.fakes import FIXED_NOW, FakeDeliveryChannel, FakeGenerator, fixed_clock, no_sleep

pytestmark = pytest.mark.asyncio


def make_runner(store, generator, tracker=None, sleep=no_sleep, batch_size=5):
    executor = ReportExecutor(
        store=store,
        generator=generator,
        delivery=FakeDeliveryChannel(),
        clock=fixed_clock,
    )
    return CycleRunner(
        store=store,
        executor=executor,
        tracker=tracker if tracker is not None else FailureTracker(max_failures=3),
        batch_size=batch_size,
        inter_job_delay=5,
        clock=fixed_clock,
        sleep=sleep,
    )


class TestDueSelection:
    """Tests for which schedules a cycle picks up."""

    async def test_executes_due_active_schedules(self, runner, schedule_factory, fetch):
        due = await schedule_factory()
        await schedule_factory(is_active=False)
        await schedule_factory(next_run=FIXED_NOW + timedelta(minutes=1))
        await schedule_factory(next_run=None)

        summary = await runner.run_cycle()

        assert summary.found == 1
        assert summary.succeeded == 1
        assert [r.schedule_id for r in summary.results] == [due.id]
        assert len(await fetch.history()) == 1

    async def test_schedule_due_exactly_now_is_picked_up(self, runner, schedule_factory):
        await schedule_factory(next_run=FIXED_NOW)

        summary = await runner.run_cycle()

        assert summary.executed == 1

    async def test_batch_limit_seven_due_five_executed(self, job_store, schedule_factory, fetch):
        """Only batch_size schedules run per cycle, most overdue first."""
        schedules = [
            await schedule_factory(entity_id=i, next_run=FIXED_NOW - timedelta(hours=10 - i))
            for i in range(7)
        ]
        runner = make_runner(job_store, FakeGenerator())

        summary = await runner.run_cycle()

        assert summary.found == 5
        assert summary.executed == 5
        assert [r.schedule_id for r in summary.results] == [s.id for s in schedules[:5]]

        history = await fetch.history()
        assert len(history) == 5
        assert {h.schedule_id for h in history} == {s.id for s in schedules[:5]}

        # The two least overdue stay due, untouched, for the next cycle
        for leftover in schedules[5:]:
            stored = await fetch.schedule(leftover.id)
            assert stored.last_run is None
            assert stored.next_run == leftover.next_run

        second = await runner.run_cycle()

        assert second.found == 2
        assert [r.schedule_id for r in second.results] == [s.id for s in schedules[5:]]
        assert all(r.success for r in second.results)

    async def test_empty_cycle(self, runner):
        summary = await runner.run_cycle()

        assert summary.skipped is False
        assert summary.found == 0
        assert summary.executed == 0
        assert summary.error is None


class TestNoOverlap:
    """Tests for the in-flight guard."""

    async def test_second_cycle_is_skipped_while_first_runs(
        self, job_store, schedule_factory, fetch
    ):
        started = asyncio.Event()
        release = asyncio.Event()

        class BlockingGenerator:
            async def generate(self, request):
                started.set()
                await release.wait()
                return b"report"

        await schedule_factory()
        runner = make_runner(job_store, BlockingGenerator())

        first = asyncio.create_task(runner.run_cycle())
        await asyncio.wait_for(started.wait(), timeout=5)

        assert runner.is_processing is True
        second = await runner.run_cycle()
        assert second.skipped is True
        assert second.executed == 0

        release.set()
        first_summary = await asyncio.wait_for(first, timeout=5)

        assert first_summary.succeeded == 1
        assert runner.is_processing is False
        assert len(await fetch.history()) == 1

    async def test_guard_released_when_store_fails(self, tracker):
        """A failing store query aborts the cycle but does not wedge the guard."""
        store = AsyncMock()
        store.find_due_jobs.side_effect = ConnectionError("database unavailable")
        runner = CycleRunner(store=store, executor=AsyncMock(), tracker=tracker, sleep=no_sleep)

        summary = await runner.run_cycle()

        assert summary.error == "database unavailable"
        assert runner.is_processing is False

        store.find_due_jobs.side_effect = None
        store.find_due_jobs.return_value = []
        assert (await runner.run_cycle()).error is None


class TestFailureCeiling:
    """Tests for consecutive-failure handling."""

    async def test_failure_increments_counter(self, job_store, schedule_factory):
        schedule = await schedule_factory()
        tracker = FailureTracker(max_failures=3)
        runner = make_runner(job_store, FakeGenerator(error=Exception("timeout")), tracker)

        summary = await runner.run_cycle()

        assert summary.failed == 1
        assert tracker.count(schedule.id) == 1

    async def test_ceiling_reached_then_skipped(self, job_store, schedule_factory, fetch):
        """At the ceiling the schedule is skipped once and its counter dropped."""
        schedule = await schedule_factory()
        tracker = FailureTracker(max_failures=3)
        generator = FakeGenerator(error=Exception("timeout"))
        runner = make_runner(job_store, generator, tracker)

        for _ in range(3):
            await runner.run_cycle()
        assert tracker.count(schedule.id) == 3
        assert len(generator.requests) == 3

        summary = await runner.run_cycle()

        assert summary.quarantined == [schedule.id]
        assert summary.executed == 0
        assert schedule.id not in tracker
        assert len(generator.requests) == 3
        assert len(await fetch.history(schedule.id)) == 3

        # Next cycle gets a fresh attempt
        summary = await runner.run_cycle()
        assert summary.executed == 1
        assert len(generator.requests) == 4

    async def test_success_resets_counter(self, job_store, schedule_factory):
        schedule = await schedule_factory()
        tracker = FailureTracker(max_failures=3)
        generator = FakeGenerator(error=Exception("timeout"))
        runner = make_runner(job_store, generator, tracker)

        await runner.run_cycle()
        await runner.run_cycle()
        assert tracker.count(schedule.id) == 2

        generator.error = None
        summary = await runner.run_cycle()

        assert summary.succeeded == 1
        assert schedule.id not in tracker

    async def test_one_failure_does_not_stop_the_batch(self, job_store, schedule_factory, fetch):
        class PickyGenerator:
            async def generate(self, request):
                if request.entity_id == 1:
                    raise RuntimeError("no data")
                return b"report"

        await schedule_factory(entity_id=1, next_run=FIXED_NOW - timedelta(hours=2))
        await schedule_factory(entity_id=2)
        runner = make_runner(job_store, PickyGenerator())

        summary = await runner.run_cycle()

        assert summary.failed == 1
        assert summary.succeeded == 1
        statuses = [h.status for h in await fetch.history()]
        assert statuses == [ReportStatus.FAILED, ReportStatus.SUCCESS]


class TestInterJobDelay:
    """Tests for the pause between jobs."""

    async def test_sleeps_after_each_executed_job(self, job_store, schedule_factory):
        await schedule_factory()
        await schedule_factory()
        sleep = AsyncMock()
        runner = make_runner(job_store, FakeGenerator(), sleep=sleep)

        await runner.run_cycle()

        assert sleep.await_count == 2
        sleep.assert_awaited_with(5)

    async def test_no_sleep_for_skipped_schedule(self, job_store, schedule_factory):
        schedule = await schedule_factory()
        tracker = FailureTracker(max_failures=1)
        tracker.record_failure(schedule.id)
        sleep = AsyncMock()
        runner = make_runner(job_store, FakeGenerator(), tracker=tracker, sleep=sleep)

        summary = await runner.run_cycle()

        assert summary.quarantined == [schedule.id]
        sleep.assert_not_awaited()


class TestStopRequest:
    """Tests for request_stop()."""

    async def test_cycle_stops_after_current_job(self, job_store, schedule_factory):
        await schedule_factory(next_run=FIXED_NOW - timedelta(hours=3))
        await schedule_factory(next_run=FIXED_NOW - timedelta(hours=2))
        await schedule_factory(next_run=FIXED_NOW - timedelta(hours=1))
        sleep = AsyncMock()
        runner = None

        class StoppingGenerator:
            async def generate(self, request):
                runner.request_stop()
                return b"report"

        runner = make_runner(job_store, StoppingGenerator(), sleep=sleep)

        summary = await runner.run_cycle()

        assert summary.found == 3
        assert summary.executed == 1
        assert summary.succeeded == 1
        sleep.assert_not_awaited()
        assert runner.is_processing is False

    async def test_resume_allows_next_cycle(self, runner, schedule_factory):
        await schedule_factory()
        runner.request_stop()
        runner.resume()

        summary = await runner.run_cycle()

        assert summary.executed == 1
