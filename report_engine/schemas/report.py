from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from report_engine.models.history import ReportStatus


class SideEffectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    ok: bool
    error: str | None = None


class ExecutionResultResponse(BaseModel):
    """Outcome of one report attempt."""

    model_config = ConfigDict(from_attributes=True)

    schedule_id: int
    success: bool
    message: str
    execution_time_ms: int
    error: str | None = None
    history_id: int | None = None
    file_size: int = 0
    side_effects: list[SideEffectResponse] = Field(default_factory=list)


class CycleSummaryResponse(BaseModel):
    """Outcome of one polling cycle."""

    model_config = ConfigDict(from_attributes=True)

    skipped: bool
    found: int
    executed: int
    succeeded: int
    failed: int
    quarantined: list[int] = Field(default_factory=list)
    results: list[ExecutionResultResponse] = Field(default_factory=list)
    error: str | None = None


class SchedulerStatusResponse(BaseModel):
    running: bool
    processing: bool
    interval_minutes: int
    batch_size: int
    max_failures: int
    next_fire_time: str | None = None
    failure_counts: dict[int, int] = Field(default_factory=dict)


class ReportHistoryResponse(BaseModel):
    """One row of report_history."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    schedule_id: int
    entity_id: int
    report_type: str
    status: ReportStatus
    error_message: str | None
    generated_at: datetime | None
    sent_at: datetime | None
    recipient_count: int
    file_size: int | None
    created_at: datetime


class ReportStatsResponse(BaseModel):
    """Schedule and delivery statistics over the last 30 days."""

    total_schedules: int
    active_schedules: int
    reports_last_30_days: int
    successful_reports: int
    failed_reports: int
    success_rate: float


class ReportAnalyticsResponse(BaseModel):
    """Aggregated analytics for a single schedule."""

    schedule_id: int
    total_attempts: int
    successful_attempts: int
    failed_attempts: int
    success_rate: float
    avg_execution_time_ms: float | None
    avg_file_size: float | None
    last_failure_at: datetime | None
    last_error: str | None
