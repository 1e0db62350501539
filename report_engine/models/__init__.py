from report_engine.models.base import Base
from report_engine.models.history import ReportAnalytics, ReportHistory, ReportStatus
from report_engine.models.schedule import ReportFrequency, ReportSchedule

__all__ = [
    "Base",
    "ReportSchedule",
    "ReportFrequency",
    "ReportHistory",
    "ReportStatus",
    "ReportAnalytics",
]
