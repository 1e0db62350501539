"""Single report execution: generate, deliver, record.

One call to ReportExecutor.execute() is one attempt. It creates exactly one
history row (when the schedule exists and the insert succeeds), moves it to
SUCCESS or FAILED, appends an analytics row and, on success only, advances
the schedule's last_run/next_run. A manual run (advance_schedule=False)
records last_run only and keeps the schedule's next due time.

Every write after the history insert is best-effort: a failed write is
logged and reported in ExecutionResult.side_effects but never changes the
outcome of the attempt.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from report_engine.core.datetime_utils import add_months, utc_now
from report_engine.core.exceptions import ReportTimeoutError
from report_engine.core.logging import get_logger
from report_engine.models.history import ReportStatus
from report_engine.services.email_service import (
    DeliveryChannel,
    DeliveryMessage,
    build_subject,
    render_report_email,
)
from report_engine.services.generators import ContentGenerator, ReportRequest, report_filename
from report_engine.services.job_store import JobStore
from report_engine.services.next_run import calculate_next_run

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class SideEffectResult:
    """Outcome of one best-effort persistence write."""

    name: str
    ok: bool
    error: str | None = None


@dataclass
class ExecutionResult:
    """Outcome of one report attempt."""

    schedule_id: int
    success: bool
    message: str
    execution_time_ms: int = 0
    error: str | None = None
    history_id: int | None = None
    file_size: int = 0
    side_effects: list[SideEffectResult] = field(default_factory=list)

    @property
    def failed_side_effects(self) -> list[SideEffectResult]:
        return [s for s in self.side_effects if not s.ok]


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


class ReportExecutor:
    """Runs one scheduled report end to end."""

    def __init__(
        self,
        store: JobStore,
        generator: ContentGenerator,
        delivery: DeliveryChannel,
        brand_name: str = "Scheduled",
        report_format: str = "pdf",
        report_window_months: int = 1,
        generation_timeout: float | None = 300,
        delivery_timeout: float | None = 120,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.generator = generator
        self.delivery = delivery
        self.brand_name = brand_name
        self.report_format = report_format
        self.report_window_months = report_window_months
        self.generation_timeout = generation_timeout
        self.delivery_timeout = delivery_timeout
        self._clock = clock

    async def execute(self, schedule_id: int, advance_schedule: bool = True) -> ExecutionResult:
        """Execute one attempt for a schedule. Never raises.

        Args:
            schedule_id: Schedule to run
            advance_schedule: On success, move next_run forward by the
                schedule's frequency. Manual runs pass False.
        """
        started = time.perf_counter()

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        try:
            schedule = await self.store.find_job_by_id(schedule_id)
            if schedule is None:
                logger.bind(schedule_id=schedule_id).warning("report_schedule_not_found")
                return ExecutionResult(
                    schedule_id=schedule_id,
                    success=False,
                    message="Schedule not found",
                    execution_time_ms=elapsed_ms(),
                    error="Schedule not found",
                )

            try:
                history_id = await self.store.insert_history_record(
                    schedule_id=schedule_id,
                    entity_id=schedule.entity_id,
                    report_type=schedule.report_type,
                    status=ReportStatus.GENERATING,
                )
            except Exception as e:
                logger.bind(schedule_id=schedule_id, error=str(e)).error(
                    "report_history_create_failed"
                )
                return ExecutionResult(
                    schedule_id=schedule_id,
                    success=False,
                    message="Failed to create history entry",
                    execution_time_ms=elapsed_ms(),
                    error=_error_text(e),
                )

            recipients = list(schedule.recipients or [])
            try:
                now = self._clock()
                request = ReportRequest(
                    entity_id=schedule.entity_id,
                    report_type=schedule.report_type,
                    start_date=add_months(now, -self.report_window_months),
                    end_date=now,
                )
                artifact = await self._bounded(
                    "report generation",
                    self.generator.generate(request),
                    self.generation_timeout,
                )
                message = DeliveryMessage(
                    recipients=recipients,
                    subject=build_subject(self.brand_name, schedule.report_type, now),
                    body=render_report_email(
                        schedule.report_type,
                        request.start_date,
                        request.end_date,
                        self.brand_name,
                    ),
                    attachment=artifact,
                    filename=report_filename(schedule.report_type, self.report_format, now),
                )
                await self._bounded(
                    "report delivery",
                    self.delivery.send_with_attachment(message),
                    self.delivery_timeout,
                )
            except Exception as e:
                return await self._record_failure(schedule_id, history_id, e, elapsed_ms())

            return await self._record_success(
                schedule_id,
                history_id,
                schedule.frequency,
                advance_schedule=advance_schedule,
                recipient_count=len(recipients),
                file_size=len(artifact),
                execution_time_ms=elapsed_ms(),
            )

        except Exception as e:
            logger.bind(schedule_id=schedule_id, error=str(e)).error("report_execution_unexpected_error")
            return ExecutionResult(
                schedule_id=schedule_id,
                success=False,
                message="Unexpected error",
                execution_time_ms=elapsed_ms(),
                error=_error_text(e),
            )

    async def _record_success(
        self,
        schedule_id: int,
        history_id: int,
        frequency: Any,
        advance_schedule: bool,
        recipient_count: int,
        file_size: int,
        execution_time_ms: int,
    ) -> ExecutionResult:
        finished = self._clock()
        side_effects = [
            await self._side_effect(
                "history",
                schedule_id,
                self.store.update_history_record(
                    history_id,
                    status=ReportStatus.SUCCESS,
                    generated_at=finished,
                    sent_at=finished,
                    recipient_count=recipient_count,
                    file_size=file_size,
                ),
            ),
            await self._side_effect(
                "schedule",
                schedule_id,
                self.store.update_job_schedule_fields(
                    schedule_id,
                    last_run=finished,
                    next_run=calculate_next_run(frequency, finished) if advance_schedule else None,
                ),
            ),
            await self._side_effect(
                "analytics",
                schedule_id,
                self.store.insert_analytics_record(
                    schedule_id=schedule_id,
                    success=True,
                    execution_time_ms=execution_time_ms,
                    file_size=file_size,
                    timestamp=finished,
                ),
            ),
        ]

        logger.bind(
            schedule_id=schedule_id,
            execution_time_ms=execution_time_ms,
            file_size=file_size,
            recipients=recipient_count,
        ).info("report_executed")

        return ExecutionResult(
            schedule_id=schedule_id,
            success=True,
            message="Report generated and sent successfully",
            execution_time_ms=execution_time_ms,
            history_id=history_id,
            file_size=file_size,
            side_effects=side_effects,
        )

    async def _record_failure(
        self,
        schedule_id: int,
        history_id: int,
        error: Exception,
        execution_time_ms: int,
    ) -> ExecutionResult:
        error_message = _error_text(error)
        side_effects = [
            await self._side_effect(
                "history",
                schedule_id,
                self.store.update_history_record(
                    history_id,
                    status=ReportStatus.FAILED,
                    error_message=error_message,
                ),
            ),
            await self._side_effect(
                "analytics",
                schedule_id,
                self.store.insert_analytics_record(
                    schedule_id=schedule_id,
                    success=False,
                    execution_time_ms=execution_time_ms,
                    file_size=0,
                    timestamp=self._clock(),
                    error_message=error_message,
                ),
            ),
        ]

        logger.bind(schedule_id=schedule_id, error=error_message).error("report_execution_failed")

        return ExecutionResult(
            schedule_id=schedule_id,
            success=False,
            message="Report generation failed",
            execution_time_ms=execution_time_ms,
            error=error_message,
            history_id=history_id,
            side_effects=side_effects,
        )

    async def _side_effect(
        self,
        name: str,
        schedule_id: int,
        write: Awaitable[None],
    ) -> SideEffectResult:
        try:
            await write
        except Exception as e:
            logger.bind(schedule_id=schedule_id, side_effect=name, error=str(e)).error(
                "report_side_effect_failed"
            )
            return SideEffectResult(name=name, ok=False, error=_error_text(e))
        return SideEffectResult(name=name, ok=True)

    async def _bounded(self, operation: str, call: Awaitable[T], timeout: float | None) -> T:
        if timeout is None:
            return await call

        cm = asyncio.timeout(timeout)
        try:
            async with cm:
                return await call
        except TimeoutError as e:
            if cm.expired():
                raise ReportTimeoutError(operation, timeout) from e
            raise
