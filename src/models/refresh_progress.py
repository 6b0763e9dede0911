"""Models exchanged with the refresh executor"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class RefreshErrorType(str, Enum):
    """Category of a per-feed refresh failure"""

    NETWORK = "network"
    PARSE = "parse"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    TOO_MANY_RETRIES = "too_many_retries"
    DATABASE = "database"
    UNKNOWN = "unknown"


class RefreshError(BaseModel):
    """A single feed failure reported by the executor"""

    feed_url: str = Field(description="URL of the feed that failed")
    feed_title: str | None = Field(default=None, description="Feed title, if known")
    error_message: str = Field(description="Executor-provided error message")
    error_type: RefreshErrorType = Field(default=RefreshErrorType.UNKNOWN)
    retry_count: int = Field(default=0, ge=0, description="Retries attempted for this feed")
    timestamp: datetime = Field(description="When the failure was recorded")

    @field_validator("error_type", mode="before")
    @classmethod
    def _coerce_error_type(cls, value):
        if isinstance(value, RefreshErrorType):
            return value
        try:
            return RefreshErrorType(str(value).lower())
        except ValueError:
            return RefreshErrorType.UNKNOWN


class RefreshResponse(BaseModel):
    """Acknowledgement returned when a refresh batch is started"""

    success: bool = Field(default=True, description="Whether the batch was accepted")
    message: str = Field(default="", description="Executor message")
    total_feeds: int = Field(default=0, ge=0, description="Feeds queued in this batch")
    estimated_completion_time: float | None = Field(
        default=None, ge=0, description="Estimated seconds until completion"
    )


class RefreshProgress(BaseModel):
    """Snapshot of an in-flight (or the last) refresh batch"""

    is_active: bool = Field(default=False, description="Whether a batch is running")
    total_feeds: int = Field(default=0, ge=0)
    completed_feeds: int = Field(default=0, ge=0)
    failed_feeds: int = Field(default=0, ge=0)
    current_feed_url: str | None = Field(default=None, description="Feed being processed")
    progress_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    estimated_time_remaining: float | None = Field(
        default=None, ge=0, description="Estimated seconds remaining"
    )
    errors: list[RefreshError] = Field(default_factory=list)


class FeedStatus(str, Enum):
    """Outcome of refreshing one feed"""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class FeedRefreshStatus(BaseModel):
    """Per-feed outcome within a refresh summary"""

    feed_id: int
    feed_url: str
    feed_title: str | None = None
    status: FeedStatus
    entries_added: int = Field(default=0, ge=0)
    last_fetched_at: datetime
    error: RefreshError | None = None


class RefreshSummary(BaseModel):
    """Result of one completed refresh batch"""

    timestamp: datetime = Field(description="When the batch finished")
    total_processed: int = Field(default=0, ge=0)
    successful_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    feeds_updated: list[FeedRefreshStatus] = Field(default_factory=list)
    errors: list[RefreshError] = Field(default_factory=list)
