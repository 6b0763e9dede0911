"""Integration tests for daemon startup and shutdown"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config import AppConfig
from src.daemon import Services, _shutdown, _startup, build_services, main, run
from src.services.scheduler import JOB_ID


def _mock_services() -> Services:
    services = Services(
        settings_store=MagicMock(),
        monitor=MagicMock(),
        executor=MagicMock(),
        poller=MagicMock(),
        notifier=MagicMock(),
        scheduler=MagicMock(),
    )
    services.monitor.stop = AsyncMock()
    services.executor.close = AsyncMock()
    return services


class TestDaemonLifecycle:
    """Test daemon startup and shutdown resilience"""

    def test_startup_starts_monitor_and_scheduler(self):
        services = _mock_services()

        assert _startup(services) is True

        services.monitor.start.assert_called_once()
        services.scheduler.start.assert_called_once()

    def test_startup_reports_activity_gating_needs_input(self, caplog):
        services = _mock_services()
        services.settings_store.settings.pause_on_user_activity = True

        with caplog.at_level("INFO", logger="src.daemon"):
            _startup(services)

        assert "record_activity()" in caplog.text

    def test_startup_quiet_when_activity_gating_off(self, caplog):
        services = _mock_services()
        services.settings_store.settings.pause_on_user_activity = False

        with caplog.at_level("INFO", logger="src.daemon"):
            _startup(services)

        assert "record_activity()" not in caplog.text

    def test_startup_handles_scheduler_errors_gracefully(self):
        services = _mock_services()
        services.scheduler.start.side_effect = Exception("Scheduler failed")

        # Should not raise
        assert _startup(services) is False

    def test_startup_continues_when_monitor_fails(self):
        services = _mock_services()
        services.monitor.start.side_effect = RuntimeError("no event loop")

        assert _startup(services) is True
        services.scheduler.start.assert_called_once()

    @pytest.mark.asyncio
    async def test_shutdown_runs_every_step(self):
        services = _mock_services()
        services.scheduler.shutdown.side_effect = Exception("Shutdown failed")
        services.monitor.stop.side_effect = Exception("Stop failed")

        # Should not raise
        await _shutdown(services)

        services.poller.stop_refresh.assert_called_once()
        services.executor.close.assert_awaited_once()


class TestDaemonWiring:
    """Test the assembled daemon"""

    @pytest.mark.asyncio
    async def test_build_services_shares_components(self, settings_path):
        app_config = AppConfig(settings_path=str(settings_path))

        services = build_services(app_config)

        assert services.scheduler.poller is services.poller
        assert services.poller.executor is services.executor
        assert services.scheduler.monitor is services.monitor
        assert services.settings_store.path == settings_path
        await services.executor.close()
        await services.monitor.stop()

    @pytest.mark.asyncio
    async def test_run_schedules_enabled_refresh_and_stops(self, settings_path):
        settings_path.write_text("periodic_refresh:\n  enabled: true\n")
        app_config = AppConfig(settings_path=str(settings_path))
        stop_event = asyncio.Event()
        observed = {}

        real_build = build_services

        def build(config_arg):
            services = real_build(config_arg)
            services.monitor.probe = AsyncMock(return_value=20.0)
            observed["services"] = services
            return services

        async def stop_soon():
            await asyncio.sleep(0.05)
            scheduler = observed["services"].scheduler
            observed["job"] = scheduler.scheduler.get_job(JOB_ID)
            stop_event.set()

        with patch("src.daemon.build_services", side_effect=build):
            await asyncio.gather(run(app_config, stop_event), stop_soon())

        assert observed["job"] is not None
        scheduler = observed["services"].scheduler
        assert scheduler.scheduler.running is False
        assert scheduler.schedule_state.next_refresh_time is None

    def test_main_returns_error_code_on_failure(self):
        with patch("src.daemon.setup_logging"):
            with patch("src.daemon.run", MagicMock(side_effect=RuntimeError("boom"))):
                assert main() == 1
