"""Report execution history and analytics models."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from report_engine.models.base import Base, TimestampMixin


class ReportStatus(str, enum.Enum):
    """Status of a single report attempt."""

    PENDING = "pending"
    GENERATING = "generating"
    SUCCESS = "success"
    FAILED = "failed"


class ReportHistory(Base, TimestampMixin):
    """Audit row for one execution attempt.

    Inserted as GENERATING when the attempt starts and moved to exactly one
    of SUCCESS or FAILED when it ends. Never deleted by the engine.
    """

    __tablename__ = "report_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    schedule_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("report_schedules.id", ondelete="CASCADE"), index=True
    )
    entity_id: Mapped[int] = mapped_column(Integer, index=True)
    report_type: Mapped[str] = mapped_column(String(50))
    status: Mapped[ReportStatus] = mapped_column(
        Enum(
            ReportStatus,
            values_callable=lambda e: [x.value for x in e],
            name="reportstatus",
        ),
        default=ReportStatus.PENDING,
        index=True,
    )

    generated_at: Mapped[datetime | None] = mapped_column()
    sent_at: Mapped[datetime | None] = mapped_column()
    recipient_count: Mapped[int] = mapped_column(Integer, default=0)
    file_size: Mapped[int | None] = mapped_column(Integer)  # bytes
    error_message: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<ReportHistory id={self.id} schedule={self.schedule_id} status={self.status.value}>"


class ReportAnalytics(Base):
    """Append-only outcome and performance log, one row per attempt."""

    __tablename__ = "report_analytics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    schedule_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("report_schedules.id", ondelete="CASCADE"), index=True
    )
    success: Mapped[bool] = mapped_column(Boolean)
    execution_time_ms: Mapped[int] = mapped_column(Integer)
    file_size: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(index=True)

    def __repr__(self) -> str:
        return f"<ReportAnalytics schedule={self.schedule_id} success={self.success}>"
