"""Models for the periodic scheduler state"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from src.models.conditions import NetworkSpeed


class SchedulerState(str, Enum):
    """Lifecycle states of the periodic scheduler"""

    DISABLED = "disabled"
    SCHEDULED = "scheduled"
    EVALUATING = "evaluating"
    REFRESHING = "refreshing"
    RESCHEDULING = "rescheduling"


class SkipReason(str, Enum):
    """Why a due refresh was deferred"""

    REFRESH_IN_PROGRESS = "Refresh already in progress"
    QUIET_HOURS = "Currently in quiet hours"
    USER_ACTIVE = "User is currently active"
    SLOW_NETWORK = "Slow network connection detected"


class ScheduleState(BaseModel):
    """In-memory scheduling state, never persisted"""

    state: SchedulerState = Field(default=SchedulerState.DISABLED)
    next_refresh_time: datetime | None = Field(default=None)
    last_refresh_time: datetime | None = Field(default=None)
    last_skip_reason: SkipReason | None = Field(default=None)
    last_error: str | None = Field(default=None)


class BackgroundRefreshStatus(BaseModel):
    """Status view of automatic refresh for callers"""

    is_scheduled: bool
    state: SchedulerState
    next_refresh_time: datetime | None = None
    last_refresh_time: datetime | None = None
    is_user_active: bool
    is_quiet_hours: bool
    connection_speed: NetworkSpeed
