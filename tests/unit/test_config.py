"""Unit tests for configuration"""

from src.config import AppConfig


def test_config_defaults():
    """Test that configuration uses correct defaults"""
    config = AppConfig()

    assert config.settings_path == "./data/settings.yaml"
    assert config.min_refresh_interval_minutes == 15
    assert config.retry_delay_seconds == 60
    assert config.skip_retry_user_active_seconds == 60
    assert config.skip_retry_default_seconds == 300
    assert config.poll_initial_interval_ms == 500
    assert config.poll_max_interval_ms == 5000
    assert config.poll_backoff_multiplier == 1.5
    assert config.poll_max_failures == 5
    assert config.activity_timeout_seconds == 60.0
    assert config.network_probe_interval_seconds == 300.0
    assert config.notification_timeout_seconds == 5.0
    assert config.otel_logging_enabled is False


def test_config_loading_from_environment(monkeypatch):
    """Test that configuration loads settings from environment variables"""
    monkeypatch.setenv("SETTINGS_PATH", "/tmp/reader/settings.yaml")
    monkeypatch.setenv("EXECUTOR_BASE_URL", "http://backend:9000")
    monkeypatch.setenv("POLL_MAX_FAILURES", "8")
    monkeypatch.setenv("NOTIFICATION_BACKEND", "notify-send")

    config = AppConfig()

    assert config.settings_path == "/tmp/reader/settings.yaml"
    assert config.executor_base_url == "http://backend:9000"
    assert config.poll_max_failures == 8
    assert config.notification_backend == "notify-send"


def test_environment_variable_precedence(monkeypatch):
    """Test that environment variables take precedence over defaults"""
    monkeypatch.setenv("RETRY_DELAY_SECONDS", "120")

    config = AppConfig()

    # Overridden value
    assert config.retry_delay_seconds == 120

    # Defaults for non-overridden values
    assert config.poll_initial_interval_ms == 500
    assert config.min_refresh_interval_minutes == 15
