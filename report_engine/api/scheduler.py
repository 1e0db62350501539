"""Report scheduler control endpoints."""

from fastapi import APIRouter, Request

from report_engine.core.logging import get_logger
from report_engine.core.rate_limit import MANUAL_RUN_LIMIT, limiter
from report_engine.dependencies import Scheduler
from report_engine.schemas.report import CycleSummaryResponse, SchedulerStatusResponse

logger = get_logger(__name__)

router = APIRouter()


@router.get("/scheduler/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(scheduler: Scheduler) -> SchedulerStatusResponse:
    """Running flag, in-flight flag, limits and current failure counters."""
    return SchedulerStatusResponse(**scheduler.status())


@router.post("/scheduler/run", response_model=CycleSummaryResponse)
@limiter.limit(MANUAL_RUN_LIMIT)
async def run_cycle_now(request: Request, scheduler: Scheduler) -> CycleSummaryResponse:
    """
    Run one polling cycle immediately.

    Goes through the same in-flight guard as the timer, so a request made
    while a cycle is running returns a summary with skipped=true.
    """
    logger.info("report_cycle_triggered_via_api")
    summary = await scheduler.tick()
    return CycleSummaryResponse.model_validate(summary)
