"""Data models for the refresh scheduler"""

from src.models.conditions import ActivityEvent, ConditionSnapshot, NetworkSpeed
from src.models.refresh_progress import (
    FeedRefreshStatus,
    FeedStatus,
    RefreshError,
    RefreshErrorType,
    RefreshProgress,
    RefreshResponse,
    RefreshSummary,
)
from src.models.refresh_settings import (
    DEFAULT_REFRESH_INTERVALS,
    AppSettings,
    GeneralSettings,
    QuietHours,
    RefreshInterval,
    RefreshSettings,
)
from src.models.schedule_state import (
    BackgroundRefreshStatus,
    SchedulerState,
    ScheduleState,
    SkipReason,
)

__all__ = [
    "ActivityEvent",
    "ConditionSnapshot",
    "NetworkSpeed",
    "FeedRefreshStatus",
    "FeedStatus",
    "RefreshError",
    "RefreshErrorType",
    "RefreshProgress",
    "RefreshResponse",
    "RefreshSummary",
    "DEFAULT_REFRESH_INTERVALS",
    "AppSettings",
    "GeneralSettings",
    "QuietHours",
    "RefreshInterval",
    "RefreshSettings",
    "BackgroundRefreshStatus",
    "SchedulerState",
    "ScheduleState",
    "SkipReason",
]
