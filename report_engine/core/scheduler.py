"""
APScheduler integration for FastAPI.

Runs the report polling cycle in-process on the application's event loop.

Jobs:
- Report cycle: executes due report schedules (every `scheduler.interval_minutes`)
"""

import asyncio
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from report_engine.config import AppConfig, Settings, get_config, get_settings
from report_engine.core.database import AsyncSessionLocal
from report_engine.core.logging import get_logger
from report_engine.services.cycle_runner import CycleRunner, CycleSummary
from report_engine.services.email_service import DeliveryChannel, ResendDeliveryChannel
from report_engine.services.failure_tracker import FailureTracker
from report_engine.services.generators import ContentGenerator, load_generator
from report_engine.services.job_store import SqlAlchemyJobStore
from report_engine.services.report_executor import ReportExecutor

logger = get_logger(__name__)

REPORT_CYCLE_JOB_ID = "report_cycle"


class ReportScheduler:
    """Fires a CycleRunner on a fixed interval."""

    def __init__(
        self,
        runner: CycleRunner,
        tracker: FailureTracker,
        interval_minutes: int = 5,
    ) -> None:
        self.runner = runner
        self.tracker = tracker
        self.interval_minutes = interval_minutes
        self._scheduler: AsyncIOScheduler | None = None
        self._tick_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    async def start(self) -> None:
        """Register the recurring cycle. Calling it twice is a no-op."""
        if self._scheduler is not None:
            logger.debug("report_scheduler_already_running")
            return

        scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop(), timezone="UTC")
        scheduler.add_job(
            self.tick,
            IntervalTrigger(minutes=self.interval_minutes),
            id=REPORT_CYCLE_JOB_ID,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=60,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.bind(
            job=REPORT_CYCLE_JOB_ID,
            interval_minutes=self.interval_minutes,
        ).info("report_scheduler_started")

    async def stop(self) -> None:
        """Cancel the timer and forget all failure counters.

        A cycle already in flight finishes the job it is running, then stops
        before the next one. Counters are cleared after it has returned.
        """
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("report_scheduler_stopped")

        tick = self._tick_task
        if tick is not None and tick is not asyncio.current_task():
            self.runner.request_stop()
            logger.info("report_scheduler_waiting_for_cycle")
            await asyncio.wait({tick})
            self.runner.resume()

        self.tracker.clear()

    async def tick(self) -> CycleSummary:
        """Run one cycle now. Never raises."""
        self._tick_task = asyncio.current_task()
        try:
            return await self.runner.run_cycle()
        except Exception as e:
            logger.bind(error=str(e)).error("report_scheduler_tick_failed")
            return CycleSummary(error=str(e) or type(e).__name__)
        finally:
            self._tick_task = None

    def next_fire_time(self) -> str | None:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(REPORT_CYCLE_JOB_ID)
        if job is None or job.next_run_time is None:
            return None
        return job.next_run_time.isoformat()

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "processing": self.runner.is_processing,
            "interval_minutes": self.interval_minutes,
            "batch_size": self.runner.batch_size,
            "max_failures": self.tracker.max_failures,
            "next_fire_time": self.next_fire_time(),
            "failure_counts": self.tracker.snapshot(),
        }


def build_report_scheduler(
    settings: Settings | None = None,
    config: AppConfig | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    generator: ContentGenerator | None = None,
    delivery: DeliveryChannel | None = None,
) -> ReportScheduler:
    """Wire store, executor, runner and scheduler from configuration.

    Raises:
        GeneratorLoadError: If no generator is passed and
            settings.report_generator cannot be loaded
    """
    settings = settings or get_settings()
    config = config or get_config()

    store = SqlAlchemyJobStore(session_factory or AsyncSessionLocal)
    if generator is None:
        generator = load_generator(settings.report_generator)
    if delivery is None:
        delivery = ResendDeliveryChannel(settings=settings, delivery=config.delivery)

    executor = ReportExecutor(
        store=store,
        generator=generator,
        delivery=delivery,
        brand_name=settings.brand_name,
        report_format=config.execution.report_format,
        report_window_months=config.execution.report_window_months,
        generation_timeout=config.execution.generation_timeout_seconds,
        delivery_timeout=config.execution.delivery_timeout_seconds,
    )
    tracker = FailureTracker(max_failures=config.scheduler.max_failures)
    runner = CycleRunner(
        store=store,
        executor=executor,
        tracker=tracker,
        batch_size=config.scheduler.batch_size,
        inter_job_delay=config.scheduler.inter_job_delay_seconds,
    )
    return ReportScheduler(runner, tracker, interval_minutes=config.scheduler.interval_minutes)


# Global scheduler instance
report_scheduler: ReportScheduler | None = None


def get_report_scheduler() -> ReportScheduler | None:
    return report_scheduler


async def start_scheduler() -> ReportScheduler | None:
    """Build the report scheduler and start its timer."""
    global report_scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    if not settings.report_generator:
        logger.warning("scheduler_disabled_no_report_generator")
        return None

    report_scheduler = build_report_scheduler(settings=settings)
    await report_scheduler.start()
    return report_scheduler


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler."""
    global report_scheduler
    if report_scheduler:
        await report_scheduler.stop()
        report_scheduler = None
