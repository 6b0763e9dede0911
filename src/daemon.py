"""CLI entry point running the background feed refresh daemon"""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass

from src.config import AppConfig, config
from src.services.condition_monitor import ConditionMonitor
from src.services.executor import HttpRefreshExecutor
from src.services.notifier import NotificationService
from src.services.progress_poller import ProgressPoller
from src.services.scheduler import PeriodicRefreshScheduler
from src.services.settings_store import SettingsStore
from src.services.telemetry import get_telemetry_service

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the daemon owns, wired together"""

    settings_store: SettingsStore
    monitor: ConditionMonitor
    executor: HttpRefreshExecutor
    poller: ProgressPoller
    notifier: NotificationService
    scheduler: PeriodicRefreshScheduler


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the daemon (stdout)"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_services(app_config: AppConfig | None = None) -> Services:
    """Construct and wire all services; nothing is started yet"""
    app_config = app_config or config
    telemetry = get_telemetry_service()

    settings_store = SettingsStore(app_config=app_config)
    monitor = ConditionMonitor(app_config=app_config)
    executor = HttpRefreshExecutor(app_config=app_config)
    poller = ProgressPoller(executor, app_config=app_config)
    notifier = NotificationService(app_config=app_config)
    scheduler = PeriodicRefreshScheduler(
        settings_store=settings_store,
        poller=poller,
        monitor=monitor,
        notifier=notifier,
        telemetry=telemetry,
        app_config=app_config,
    )
    return Services(
        settings_store=settings_store,
        monitor=monitor,
        executor=executor,
        poller=poller,
        notifier=notifier,
        scheduler=scheduler,
    )


def _startup(services: Services) -> bool:
    """Start monitoring and scheduling; failures are logged, never raised"""
    try:
        services.monitor.start()
    except Exception as e:
        logger.error(f"Failed to start condition monitor: {e}")

    try:
        services.scheduler.start()
        if services.settings_store.settings.pause_on_user_activity:
            logger.info(
                "Pause on user activity is on; it only takes effect once an input source "
                "calls record_activity()/focus_gained()/focus_lost() on the condition monitor"
            )
        status = services.scheduler.status()
        if status.is_scheduled:
            logger.info(f"Automatic refresh enabled, next at {status.next_refresh_time}")
        else:
            logger.info("Automatic refresh is disabled")
        return True
    except Exception as e:
        logger.error(f"Failed to start periodic refresh scheduler: {e}")
        return False


async def _shutdown(services: Services) -> None:
    """Stop everything; each step runs even if an earlier one fails"""
    try:
        services.scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error shutting down scheduler: {e}")

    services.poller.stop_refresh()

    try:
        await services.monitor.stop()
    except Exception as e:
        logger.error(f"Error stopping condition monitor: {e}")

    try:
        await services.executor.close()
    except Exception as e:
        logger.error(f"Error closing executor client: {e}")


async def run(app_config: AppConfig | None = None, stop_event: asyncio.Event | None = None) -> None:
    """Run the daemon until stop_event is set (or SIGINT/SIGTERM arrives)"""
    services = build_services(app_config)
    stop_event = stop_event or asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Signal handlers are unavailable on some platforms and off the main thread
            pass

    _startup(services)
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down refresh daemon")
        await _shutdown(services)


def main() -> int:
    """
    Main entry point for the refresh daemon

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    setup_logging(config.log_level)

    try:
        logger.info(f"Starting refresh daemon (settings: {config.settings_path})")
        asyncio.run(run())
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
