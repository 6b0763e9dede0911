"""Models for persisted periodic refresh settings"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RefreshInterval(BaseModel):
    """A refresh cadence in minutes with a display label"""

    value: int = Field(ge=1, description="Interval in minutes")
    label: str = Field(description="Human-readable label")


DEFAULT_REFRESH_INTERVALS: list[RefreshInterval] = [
    RefreshInterval(value=15, label="15 minutes"),
    RefreshInterval(value=30, label="30 minutes"),
    RefreshInterval(value=60, label="1 hour"),
    RefreshInterval(value=120, label="2 hours"),
    RefreshInterval(value=240, label="4 hours"),
    RefreshInterval(value=480, label="8 hours"),
]


class QuietHours(BaseModel):
    """Daily window during which automatic refreshes are suppressed"""

    enabled: bool = Field(default=False, description="Whether quiet hours apply")
    start_hour: int = Field(default=23, ge=0, le=23, description="First quiet hour (0-23)")
    end_hour: int = Field(default=7, ge=0, le=23, description="First hour after the window (0-23)")


class RefreshSettings(BaseModel):
    """User configuration for automatic feed refresh"""

    enabled: bool = Field(default=False, description="Whether automatic refresh is on")
    interval: RefreshInterval = Field(
        default_factory=lambda: DEFAULT_REFRESH_INTERVALS[2].model_copy(),
        description="Configured refresh cadence",
    )
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    bandwidth_aware: bool = Field(default=True, description="Skip refreshes on slow networks")
    pause_on_user_activity: bool = Field(
        default=True, description="Skip refreshes while the user is active"
    )
    desktop_notifications: bool = Field(
        default=False, description="Notify when an automatic refresh finishes"
    )
    last_auto_refresh: datetime | None = Field(
        default=None, description="When the last automatic refresh started"
    )

    @property
    def interval_minutes(self) -> int:
        return self.interval.value


class Theme(str, Enum):
    """UI theme preference"""

    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class GeneralSettings(BaseModel):
    """Settings owned by other parts of the application, carried through unchanged"""

    theme: Theme = Field(default=Theme.SYSTEM)
    compact_view: bool = Field(default=False)
    mark_as_read_on_scroll: bool = Field(default=False)


class AppSettings(BaseModel):
    """Complete persisted settings document"""

    periodic_refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    general: GeneralSettings = Field(default_factory=GeneralSettings)
