"""Recurring report schedule model."""

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, Enum, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from report_engine.models.base import Base, TimestampMixin


class ReportFrequency(str, enum.Enum):
    """How often a scheduled report is sent."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ReportSchedule(Base, TimestampMixin):
    """A recurring report definition.

    Created and edited outside this engine. The engine only reads schedules
    and, after a successful run, writes last_run and next_run.
    """

    __tablename__ = "report_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(Integer, index=True)
    entity_id: Mapped[int] = mapped_column(Integer, index=True)
    report_type: Mapped[str] = mapped_column(String(50))
    frequency: Mapped[ReportFrequency] = mapped_column(
        Enum(
            ReportFrequency,
            values_callable=lambda e: [x.value for x in e],
            name="reportfrequency",
        ),
    )
    recipients: Mapped[list[str]] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # NULL next_run is never due
    next_run: Mapped[datetime | None] = mapped_column(index=True)
    last_run: Mapped[datetime | None] = mapped_column()

    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return (
            f"<ReportSchedule id={self.id} type={self.report_type} "
            f"freq={self.frequency} next_run={self.next_run}>"
        )
