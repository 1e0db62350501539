from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from report_engine.core.database import get_db
from report_engine.core.scheduler import ReportScheduler, get_report_scheduler

# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]


def require_report_scheduler(
    scheduler: ReportScheduler | None = Depends(get_report_scheduler),
) -> ReportScheduler:
    """Get the running report scheduler, raise 503 if it was never started."""
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Report scheduler is not running",
        )
    return scheduler


Scheduler = Annotated[ReportScheduler, Depends(require_report_scheduler)]
