from fastapi import APIRouter

from report_engine.api.reports import router as reports_router
from report_engine.api.scheduler import router as scheduler_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(scheduler_router, prefix="/api", tags=["scheduler"])
api_router.include_router(reports_router, prefix="/api", tags=["reports"])
