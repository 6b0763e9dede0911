"""Centralized configuration using Pydantic BaseSettings"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration with environment variable support"""

    # Persisted user settings
    settings_path: str = Field(
        default="./data/settings.yaml", description="File holding persisted refresh settings"
    )

    # Refresh executor (feed backend)
    executor_base_url: str = Field(
        default="http://127.0.0.1:8000", description="Base URL of the feed refresh backend"
    )
    executor_timeout_seconds: float = Field(
        default=30.0, ge=1.0, le=300.0, description="HTTP timeout for executor calls"
    )

    # Scheduling
    min_refresh_interval_minutes: int = Field(
        default=15, ge=1, description="Floor applied to the configured refresh interval"
    )
    retry_delay_seconds: int = Field(
        default=60, ge=1, description="Delay before retrying a failed automatic refresh"
    )
    skip_retry_user_active_seconds: int = Field(
        default=60, ge=1, description="Reschedule delay when skipped because the user is active"
    )
    skip_retry_default_seconds: int = Field(
        default=300, ge=1, description="Reschedule delay for every other skip reason"
    )

    # Progress polling
    poll_initial_interval_ms: int = Field(
        default=500, ge=10, description="Initial delay between progress queries"
    )
    poll_max_interval_ms: int = Field(
        default=5000, ge=10, description="Upper bound for the progress poll delay"
    )
    poll_backoff_multiplier: float = Field(
        default=1.5, ge=1.0, le=10.0, description="Poll delay multiplier after a failed query"
    )
    poll_max_failures: int = Field(
        default=5, ge=1, le=100, description="Consecutive failed queries before polling stops"
    )

    # Condition monitoring
    activity_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Seconds without input before the user counts as idle"
    )
    network_probe_interval_seconds: float = Field(
        default=300.0, gt=0, description="Seconds between periodic network probes"
    )
    network_probe_debounce_seconds: float = Field(
        default=1.0, ge=0, description="Delay after a connectivity change before probing"
    )
    network_probe_url: str = Field(
        default="https://www.gstatic.com/generate_204",
        description="URL used to measure round-trip latency",
    )
    network_probe_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for a single network probe"
    )
    slow_latency_ms: float = Field(
        default=1000.0, gt=0, description="Latency above which the network counts as slow"
    )
    moderate_latency_ms: float = Field(
        default=500.0, gt=0, description="Latency above which the network counts as moderate"
    )

    # Notifications
    notification_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Seconds before a notification is dismissed"
    )
    notification_backend: str = Field(
        default="log", description="Notification backend (log, notify-send)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level for the daemon")

    # OpenTelemetry
    otel_logging_enabled: bool = Field(default=False, description="Enable OpenTelemetry logging")
    otel_tracing_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry tracing for HTTP requests"
    )
    otel_endpoint: str = Field(
        default="http://localhost:4318",
        description="OpenTelemetry collector endpoint (HTTP/protobuf)",
    )
    otel_service_name: str = Field(
        default="feed-refresh-scheduler", description="Service name for OpenTelemetry"
    )
    otel_service_version: str = Field(
        default="1.0.0", description="Service version for OpenTelemetry"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global config instance
config = AppConfig()
