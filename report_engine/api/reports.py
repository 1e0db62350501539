"""Report history, statistics and manual trigger endpoints."""

from fastapi import APIRouter, HTTPException, Query, Request, status
from sqlalchemy import func, select

from report_engine.core.datetime_utils import get_cutoff
from report_engine.core.logging import get_logger
from report_engine.core.rate_limit import MANUAL_RUN_LIMIT, limiter
from report_engine.dependencies import DBSession, Scheduler
from report_engine.models.history import ReportAnalytics, ReportHistory, ReportStatus
from report_engine.models.schedule import ReportSchedule
from report_engine.schemas.report import (
    ExecutionResultResponse,
    ReportAnalyticsResponse,
    ReportHistoryResponse,
    ReportStatsResponse,
)

logger = get_logger(__name__)

router = APIRouter()

STATS_WINDOW_DAYS = 30


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0


@router.post("/reports/{schedule_id}/run", response_model=ExecutionResultResponse)
@limiter.limit(MANUAL_RUN_LIMIT)
async def trigger_report(
    request: Request,
    schedule_id: int,
    db: DBSession,
    scheduler: Scheduler,
) -> ExecutionResultResponse:
    """
    Run one report now, outside the polling cycle.

    The failure ceiling does not apply and the attempt does not touch the
    failure counters. On success only last_run is recorded; next_run keeps
    the schedule's regular due time. A failed attempt is still returned
    with 200; the outcome is in the body. Returns 409 while a polling cycle
    is in flight.
    """
    schedule = await db.get(ReportSchedule, schedule_id)
    if not schedule:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report schedule not found",
        )

    if scheduler.runner.is_processing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A report cycle is in progress, try again later",
        )

    logger.bind(schedule_id=schedule_id).info("report_triggered_manually")
    result = await scheduler.runner.executor.execute(schedule_id, advance_schedule=False)
    return ExecutionResultResponse.model_validate(result)


@router.get("/reports/history", response_model=list[ReportHistoryResponse])
async def list_report_history(
    db: DBSession,
    schedule_id: int | None = Query(default=None, description="Filter by schedule ID"),
    entity_id: int | None = Query(default=None, description="Filter by entity ID"),
    report_status: ReportStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[ReportHistoryResponse]:
    """List report attempts, newest first."""
    query = select(ReportHistory).order_by(ReportHistory.created_at.desc(), ReportHistory.id.desc())

    if schedule_id is not None:
        query = query.where(ReportHistory.schedule_id == schedule_id)
    if entity_id is not None:
        query = query.where(ReportHistory.entity_id == entity_id)
    if report_status is not None:
        query = query.where(ReportHistory.status == report_status)

    result = await db.execute(query.offset(offset).limit(limit))
    return [ReportHistoryResponse.model_validate(row) for row in result.scalars().all()]


@router.get("/reports/stats", response_model=ReportStatsResponse)
async def get_report_stats(db: DBSession) -> ReportStatsResponse:
    """Schedule counts and the success rate of the last 30 days."""
    total_schedules = await db.scalar(select(func.count(ReportSchedule.id))) or 0
    active_schedules = (
        await db.scalar(
            select(func.count(ReportSchedule.id)).where(ReportSchedule.is_active == True)  # noqa: E712
        )
        or 0
    )

    since = get_cutoff(days=STATS_WINDOW_DAYS)
    rows = await db.execute(
        select(ReportHistory.status, func.count(ReportHistory.id))
        .where(ReportHistory.created_at >= since)
        .group_by(ReportHistory.status)
    )
    by_status = {row[0]: row[1] for row in rows.all()}

    total = sum(by_status.values())
    succeeded = by_status.get(ReportStatus.SUCCESS, 0)

    return ReportStatsResponse(
        total_schedules=total_schedules,
        active_schedules=active_schedules,
        reports_last_30_days=total,
        successful_reports=succeeded,
        failed_reports=by_status.get(ReportStatus.FAILED, 0),
        success_rate=_rate(succeeded, total),
    )


@router.get("/reports/analytics/{schedule_id}", response_model=ReportAnalyticsResponse)
async def get_schedule_analytics(schedule_id: int, db: DBSession) -> ReportAnalyticsResponse:
    """Attempt counts, averages and the last failure for one schedule."""
    schedule = await db.get(ReportSchedule, schedule_id)
    if not schedule:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report schedule not found",
        )

    totals = await db.execute(
        select(
            func.count(ReportAnalytics.id),
            func.avg(ReportAnalytics.execution_time_ms),
        ).where(ReportAnalytics.schedule_id == schedule_id)
    )
    total, avg_time = totals.one()

    successes = await db.execute(
        select(
            func.count(ReportAnalytics.id),
            func.avg(ReportAnalytics.file_size),
        ).where(
            ReportAnalytics.schedule_id == schedule_id,
            ReportAnalytics.success == True,  # noqa: E712
        )
    )
    succeeded, avg_size = successes.one()

    last_failure_result = await db.execute(
        select(ReportAnalytics)
        .where(
            ReportAnalytics.schedule_id == schedule_id,
            ReportAnalytics.success == False,  # noqa: E712
        )
        .order_by(ReportAnalytics.timestamp.desc(), ReportAnalytics.id.desc())
        .limit(1)
    )
    last_failure = last_failure_result.scalar_one_or_none()

    total = total or 0
    succeeded = succeeded or 0

    return ReportAnalyticsResponse(
        schedule_id=schedule_id,
        total_attempts=total,
        successful_attempts=succeeded,
        failed_attempts=total - succeeded,
        success_rate=_rate(succeeded, total),
        avg_execution_time_ms=float(avg_time) if avg_time is not None else None,
        avg_file_size=float(avg_size) if avg_size is not None else None,
        last_failure_at=last_failure.timestamp if last_failure else None,
        last_error=last_failure.error_message if last_failure else None,
    )
