"""One polling cycle over due report schedules.

A cycle fetches at most batch_size due schedules and executes them one after
another with a fixed pause in between. Cycles never overlap: a cycle that
starts while another is in flight returns immediately and is not queued.

The in-flight flag and the failure counters are only touched from the event
loop running the cycle, so they need no lock.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from report_engine.core.datetime_utils import utc_now
from report_engine.core.logging import get_logger
from report_engine.services.failure_tracker import FailureTracker
from report_engine.services.job_store import JobStore
from report_engine.services.report_executor import ExecutionResult, ReportExecutor

logger = get_logger(__name__)


@dataclass
class CycleSummary:
    """What a single cycle did."""

    skipped: bool = False
    found: int = 0
    succeeded: int = 0
    failed: int = 0
    quarantined: list[int] = field(default_factory=list)
    results: list[ExecutionResult] = field(default_factory=list)
    error: str | None = None

    @property
    def executed(self) -> int:
        return len(self.results)


class CycleRunner:
    """Executes due schedules with mutual exclusion and a bounded batch."""

    def __init__(
        self,
        store: JobStore,
        executor: ReportExecutor,
        tracker: FailureTracker,
        batch_size: int = 5,
        inter_job_delay: float = 5.0,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.executor = executor
        self.tracker = tracker
        self.batch_size = batch_size
        self.inter_job_delay = inter_job_delay
        self._clock = clock
        self._sleep = sleep
        self._processing = False
        self._stop_requested = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    def request_stop(self) -> None:
        """Make an in-flight cycle stop after the job it is running."""
        self._stop_requested = True

    def resume(self) -> None:
        self._stop_requested = False

    async def run_cycle(self) -> CycleSummary:
        """Run one cycle. Never raises."""
        if self._processing:
            logger.info("report_cycle_already_processing_skipped")
            return CycleSummary(skipped=True)

        self._processing = True
        summary = CycleSummary()

        try:
            schedules = await self.store.find_due_jobs(
                active_only=True,
                due_before=self._clock(),
                limit=self.batch_size,
            )
            summary.found = len(schedules)
            logger.bind(pending=summary.found, batch_size=self.batch_size).info(
                "report_cycle_started"
            )

            for schedule in schedules:
                if self._stop_requested:
                    logger.bind(remaining=summary.found - summary.executed - len(summary.quarantined)).info(
                        "report_cycle_stopped_early"
                    )
                    break
                if await self._process(schedule.id, summary) and not self._stop_requested:
                    await self._sleep(self.inter_job_delay)

        except Exception as e:
            summary.error = str(e) or type(e).__name__
            logger.bind(error=summary.error).error("report_cycle_failed")
        finally:
            self._processing = False

        if not summary.error:
            logger.bind(
                found=summary.found,
                succeeded=summary.succeeded,
                failed=summary.failed,
                quarantined=len(summary.quarantined),
            ).info("report_cycle_completed")
        return summary

    async def _process(self, schedule_id: int, summary: CycleSummary) -> bool:
        """Gate one schedule on its failure count and execute it.

        Returns False when the schedule was skipped at the ceiling.
        """
        failure_count = self.tracker.count(schedule_id)

        if self.tracker.has_reached_ceiling(schedule_id):
            logger.bind(
                schedule_id=schedule_id,
                failures=failure_count,
                max_failures=self.tracker.max_failures,
            ).warning("report_schedule_exceeded_max_failures")
            self.tracker.reset(schedule_id)
            summary.quarantined.append(schedule_id)
            return False

        result = await self.executor.execute(schedule_id)
        summary.results.append(result)

        if result.success:
            self.tracker.reset(schedule_id)
            summary.succeeded += 1
        else:
            failures = self.tracker.record_failure(schedule_id)
            summary.failed += 1
            logger.bind(
                schedule_id=schedule_id,
                failures=failures,
                max_failures=self.tracker.max_failures,
                error=result.error,
            ).warning("report_schedule_failed")
        return True
