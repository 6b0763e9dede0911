"""Models for runtime conditions that gate automatic refresh"""

from enum import Enum

from pydantic import BaseModel, Field


class NetworkSpeed(str, Enum):
    """Coarse network speed class"""

    SLOW = "slow"
    MODERATE = "moderate"
    FAST = "fast"


class ActivityEvent(str, Enum):
    """Input events that count as user activity"""

    POINTER = "pointer"
    KEY = "key"
    SCROLL = "scroll"
    TOUCH = "touch"
    CLICK = "click"
    FOCUS = "focus"


class ConditionSnapshot(BaseModel):
    """Point-in-time view of the monitored conditions"""

    is_user_active: bool = Field(description="Whether the user interacted recently")
    network_speed: NetworkSpeed = Field(description="Last measured network speed class")
    seconds_since_last_activity: float = Field(
        ge=0.0, description="Seconds since the last input event"
    )
