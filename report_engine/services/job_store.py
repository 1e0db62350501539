"""Persistence contract for the report engine and its SQLAlchemy implementation.

Every SqlAlchemyJobStore call opens its own session and commits before
returning, so a failed write never rolls back an earlier one.
"""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from report_engine.core.logging import get_logger
from report_engine.models.history import ReportAnalytics, ReportHistory, ReportStatus
from report_engine.models.schedule import ReportSchedule

logger = get_logger(__name__)


class JobStore(Protocol):
    """Read/write access to schedules, history and analytics."""

    async def find_due_jobs(
        self,
        active_only: bool,
        due_before: datetime,
        limit: int,
    ) -> list[ReportSchedule]: ...

    async def find_job_by_id(self, schedule_id: int) -> ReportSchedule | None: ...

    async def update_job_schedule_fields(
        self,
        schedule_id: int,
        last_run: datetime,
        next_run: datetime | None = None,
    ) -> None: ...

    async def insert_history_record(
        self,
        schedule_id: int,
        entity_id: int,
        report_type: str,
        status: ReportStatus,
    ) -> int: ...

    async def update_history_record(self, history_id: int, **fields: Any) -> None: ...

    async def insert_analytics_record(
        self,
        schedule_id: int,
        success: bool,
        execution_time_ms: int,
        file_size: int,
        timestamp: datetime,
        error_message: str | None = None,
    ) -> None: ...


class SqlAlchemyJobStore:
    """JobStore backed by the report_* tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_due_jobs(
        self,
        active_only: bool,
        due_before: datetime,
        limit: int,
    ) -> list[ReportSchedule]:
        """Get schedules whose next_run is at or before due_before.

        Ordered by next_run then id, so the most overdue schedules go first.
        """
        query = select(ReportSchedule).where(ReportSchedule.next_run <= due_before)
        if active_only:
            query = query.where(ReportSchedule.is_active == True)  # noqa: E712
        query = query.order_by(ReportSchedule.next_run, ReportSchedule.id).limit(limit)

        async with self._session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def find_job_by_id(self, schedule_id: int) -> ReportSchedule | None:
        async with self._session_factory() as db:
            return await db.get(ReportSchedule, schedule_id)

    async def update_job_schedule_fields(
        self,
        schedule_id: int,
        last_run: datetime,
        next_run: datetime | None = None,
    ) -> None:
        """Set last_run, and next_run unless it is None."""
        values: dict[str, Any] = {"last_run": last_run}
        if next_run is not None:
            values["next_run"] = next_run

        async with self._session_factory() as db:
            await db.execute(
                update(ReportSchedule).where(ReportSchedule.id == schedule_id).values(**values)
            )
            await db.commit()

    async def insert_history_record(
        self,
        schedule_id: int,
        entity_id: int,
        report_type: str,
        status: ReportStatus,
    ) -> int:
        async with self._session_factory() as db:
            history = ReportHistory(
                schedule_id=schedule_id,
                entity_id=entity_id,
                report_type=report_type,
                status=status,
            )
            db.add(history)
            await db.commit()
            logger.bind(schedule_id=schedule_id, history_id=history.id).debug(
                "report_history_created"
            )
            return history.id

    async def update_history_record(self, history_id: int, **fields: Any) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(ReportHistory).where(ReportHistory.id == history_id).values(**fields)
            )
            await db.commit()

    async def insert_analytics_record(
        self,
        schedule_id: int,
        success: bool,
        execution_time_ms: int,
        file_size: int,
        timestamp: datetime,
        error_message: str | None = None,
    ) -> None:
        async with self._session_factory() as db:
            db.add(
                ReportAnalytics(
                    schedule_id=schedule_id,
                    success=success,
                    execution_time_ms=execution_time_ms,
                    file_size=file_size,
                    error_message=error_message,
                    timestamp=timestamp,
                )
            )
            await db.commit()
