from report_engine.schemas.report import (
    CycleSummaryResponse,
    ExecutionResultResponse,
    ReportAnalyticsResponse,
    ReportHistoryResponse,
    ReportStatsResponse,
    SchedulerStatusResponse,
    SideEffectResponse,
)

__all__ = [
    "CycleSummaryResponse",
    "ExecutionResultResponse",
    "ReportAnalyticsResponse",
    "ReportHistoryResponse",
    "ReportStatsResponse",
    "SchedulerStatusResponse",
    "SideEffectResponse",
]
