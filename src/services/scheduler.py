"""Periodic automatic refresh: decides when to refresh, when to skip, and reschedules"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from src.config import AppConfig, config
from src.models.conditions import NetworkSpeed
from src.models.refresh_progress import RefreshSummary
from src.models.refresh_settings import RefreshInterval, RefreshSettings
from src.models.schedule_state import (
    BackgroundRefreshStatus,
    SchedulerState,
    ScheduleState,
    SkipReason,
)
from src.services.condition_monitor import ConditionMonitor
from src.services.notifier import NotificationService
from src.services.progress_poller import ProgressPoller, RefreshStartError
from src.services.settings_store import SettingsStore, is_quiet_hours
from src.services.telemetry import TelemetryService, get_telemetry_service

logger = logging.getLogger(__name__)

JOB_ID = "auto_feed_refresh"

SUCCESS_TITLE = "Feed Refresh Complete"
SUCCESS_BODY = "Your feeds have been automatically updated."
FAILURE_TITLE = "Feed Refresh Failed"
FAILURE_BODY = "Failed to refresh feeds automatically. Will retry later."


class PeriodicRefreshScheduler:
    """
    Drives automatic feed refresh

    At most one fire is pending at a time: every (re)schedule replaces the
    single APScheduler date job. Disabling removes that job but leaves an
    in-flight refresh running to completion.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        poller: ProgressPoller,
        monitor: ConditionMonitor,
        notifier: NotificationService,
        scheduler: AsyncIOScheduler | None = None,
        telemetry: TelemetryService | None = None,
        app_config: AppConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings_store = settings_store
        self.poller = poller
        self.monitor = monitor
        self.notifier = notifier
        self.scheduler = scheduler or AsyncIOScheduler()
        self.telemetry = telemetry or get_telemetry_service()
        self.config = app_config or config
        self.clock = clock

        self.schedule_state = ScheduleState(
            last_refresh_time=settings_store.settings.last_auto_refresh
        )
        self._in_flight = False

    @property
    def settings(self) -> RefreshSettings:
        return self.settings_store.settings

    @property
    def state(self) -> SchedulerState:
        return self.schedule_state.state

    # Lifecycle

    def start(self) -> None:
        """Start the underlying scheduler and schedule the first refresh"""
        if not self.scheduler.running:
            self.scheduler.start()
        if self.settings.desktop_notifications:
            self.notifier.ensure_permission()
        self.reschedule()
        logger.info("Periodic refresh scheduler started")

    def shutdown(self) -> None:
        """Cancel the pending refresh and stop the underlying scheduler"""
        self._cancel_pending()
        self.schedule_state.next_refresh_time = None
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Periodic refresh scheduler stopped")

    # Scheduling

    def effective_interval(self, settings: RefreshSettings | None = None) -> timedelta:
        """Configured interval with the minimum interval floor applied"""
        settings = settings or self.settings
        minutes = max(settings.interval_minutes, self.config.min_refresh_interval_minutes)
        return timedelta(minutes=minutes)

    def reschedule(self) -> None:
        """Drop any pending fire and schedule a fresh one from the current settings"""
        settings = self.settings
        if not settings.enabled:
            self._disable()
            return
        self._schedule_after(self.effective_interval(settings))

    def _schedule_after(self, delay: timedelta) -> None:
        self._cancel_pending()
        if not self.settings.enabled:
            self._disable()
            return

        next_time = self.clock() + delay
        self.scheduler.add_job(
            self.run_due_refresh,
            trigger=DateTrigger(run_date=next_time),
            id=JOB_ID,
            name="Automatic feed refresh",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=None,
        )
        self.schedule_state.next_refresh_time = next_time
        if not self._in_flight:
            self.schedule_state.state = SchedulerState.SCHEDULED
        logger.info(f"Next automatic refresh scheduled for: {next_time.isoformat()}")

    def _cancel_pending(self) -> None:
        try:
            self.scheduler.remove_job(JOB_ID)
        except JobLookupError:
            pass

    def _disable(self) -> None:
        self._cancel_pending()
        self.schedule_state.next_refresh_time = None
        if not self._in_flight:
            self.schedule_state.state = SchedulerState.DISABLED
        logger.info("Automatic refresh disabled")

    def time_until_next_refresh(self) -> timedelta | None:
        next_time = self.schedule_state.next_refresh_time
        if next_time is None:
            return None
        return max(timedelta(0), next_time - self.clock())

    # Fire

    def evaluate_skip(
        self, now: datetime, settings: RefreshSettings | None = None
    ) -> SkipReason | None:
        """Return the first condition that blocks an automatic refresh, if any"""
        settings = settings or self.settings

        if self._in_flight or self.poller.is_refreshing:
            return SkipReason.REFRESH_IN_PROGRESS
        if is_quiet_hours(now, settings):
            return SkipReason.QUIET_HOURS
        if settings.pause_on_user_activity and self.monitor.is_user_active:
            return SkipReason.USER_ACTIVE
        if settings.bandwidth_aware and self.monitor.network_speed == NetworkSpeed.SLOW:
            return SkipReason.SLOW_NETWORK
        return None

    async def run_due_refresh(self) -> None:
        """Timer callback: refresh unless a skip condition holds, then reschedule"""
        now = self.clock()
        self.schedule_state.next_refresh_time = None
        settings = self.settings

        if not settings.enabled:
            self._disable()
            return

        if not self._in_flight:
            self.schedule_state.state = SchedulerState.EVALUATING

        reason = self.evaluate_skip(now, settings)
        if reason is not None:
            self._skip(reason)
            return

        self.schedule_state.last_skip_reason = None
        logger.info("Starting automatic refresh...")

        try:
            started = await self._refresh(now)
        except RefreshStartError as e:
            logger.error(f"Automatic refresh failed: {e}")
            self.schedule_state.last_error = str(e)
            self.telemetry.log_refresh_event("cycle_failed", error=e)
            await self._notify(FAILURE_TITLE, FAILURE_BODY, is_error=True)
            self._schedule_after(timedelta(seconds=self.config.retry_delay_seconds))
            return

        if started:
            self._finish_cycle(automatic=True)
            await self._notify_outcome()
        self.reschedule()

    def _skip(self, reason: SkipReason) -> None:
        logger.info(f"Skipping auto refresh: {reason.value}")
        self.schedule_state.last_skip_reason = reason
        self.telemetry.log_refresh_event("cycle_skipped", {"skip.reason": reason.value})

        if reason is SkipReason.USER_ACTIVE:
            delay = self.config.skip_retry_user_active_seconds
        else:
            delay = self.config.skip_retry_default_seconds
        self._schedule_after(timedelta(seconds=delay))

    async def _refresh(self, now: datetime) -> bool:
        """Record the start time, run one batch and wait for the poller to finish it"""
        self._in_flight = True
        self.schedule_state.state = SchedulerState.REFRESHING
        self.schedule_state.last_refresh_time = now
        # Recorded before completion so elapsed-time displays survive an exit mid-refresh
        self.settings_store.set_last_auto_refresh(now)
        self.telemetry.log_refresh_event("cycle_started")

        try:
            with self.telemetry.span("feed_refresh.cycle"):
                started = await self.poller.start_refresh()
                if started:
                    await self.poller.wait_until_complete()
            return started
        finally:
            self._in_flight = False
            self.schedule_state.state = SchedulerState.RESCHEDULING

    def _finish_cycle(self, automatic: bool) -> None:
        self.schedule_state.last_error = None
        if self.poller.error:
            logger.warning(f"Refresh outcome unknown: {self.poller.error}")
            self.telemetry.log_refresh_event("poll_aborted", error=self.poller.error)
            return

        summary = self.poller.last_summary
        attributes: dict[str, str | int | float | bool] = {"refresh.automatic": automatic}
        if summary is not None:
            attributes.update(
                {
                    "summary.total_processed": summary.total_processed,
                    "summary.failed_count": summary.failed_count,
                    "summary.duration_seconds": summary.duration_seconds,
                }
            )
        self.telemetry.log_refresh_event("cycle_completed", attributes)
        logger.info(f"{'Automatic' if automatic else 'Manual'} refresh completed successfully")

    async def _notify_outcome(self) -> None:
        if self.poller.error:
            return
        await self._notify(SUCCESS_TITLE, SUCCESS_BODY, is_error=False)

    async def _notify(self, title: str, body: str, is_error: bool) -> bool:
        if not self.settings.desktop_notifications:
            return False
        return await self.notifier.notify(title, body, is_error=is_error)

    async def force_refresh_now(self) -> RefreshSummary | None:
        """
        Refresh immediately, ignoring skip conditions and the pending schedule

        The loop is rescheduled on the normal interval afterwards, even when
        the batch cannot be started. While another refresh is running this
        is a no-op returning None, and the running refresh and its schedule
        are left untouched.

        Raises:
            RefreshStartError: If the executor fails to start the batch
        """
        if self._in_flight or self.poller.is_refreshing:
            logger.info("Manual refresh ignored: a refresh is already in progress")
            return None

        self._cancel_pending()
        now = self.clock()
        logger.info("Manual refresh requested")

        try:
            started = await self._refresh(now)
        except RefreshStartError as e:
            logger.error(f"Manual refresh failed: {e}")
            self.schedule_state.last_error = str(e)
            self.telemetry.log_refresh_event("cycle_failed", {"refresh.manual": True}, error=e)
            self.reschedule()
            raise

        self.reschedule()
        if not started:
            return None
        self._finish_cycle(automatic=False)
        return self.poller.last_summary

    # Settings

    def set_enabled(self, enabled: bool) -> None:
        self.settings_store.set_enabled(enabled)
        if enabled and self.settings.desktop_notifications:
            self.notifier.ensure_permission()
        self.reschedule()

    def toggle_auto_refresh(self) -> bool:
        enabled = not self.settings.enabled
        self.set_enabled(enabled)
        return enabled

    def set_refresh_interval(self, interval: RefreshInterval | int) -> None:
        self.settings_store.set_interval(interval)
        self.reschedule()

    def set_quiet_hours(self, start_hour: int, end_hour: int, enabled: bool = True) -> None:
        self.settings_store.set_quiet_hours(start_hour, end_hour, enabled)
        self.reschedule()

    def enable_bandwidth_awareness(self, enabled: bool) -> None:
        self.settings_store.update(bandwidth_aware=enabled)
        self.reschedule()

    def enable_pause_on_activity(self, enabled: bool) -> None:
        self.settings_store.update(pause_on_user_activity=enabled)
        self.reschedule()

    def enable_desktop_notifications(self, enabled: bool) -> None:
        self.settings_store.update(desktop_notifications=enabled)
        if enabled:
            self.notifier.ensure_permission()
        self.reschedule()

    # Status

    def status(self) -> BackgroundRefreshStatus:
        settings = self.settings
        next_time = self.schedule_state.next_refresh_time
        return BackgroundRefreshStatus(
            is_scheduled=settings.enabled and next_time is not None,
            state=self.schedule_state.state,
            next_refresh_time=next_time,
            last_refresh_time=self.schedule_state.last_refresh_time,
            is_user_active=self.monitor.is_user_active,
            is_quiet_hours=is_quiet_hours(self.clock(), settings),
            connection_speed=self.monitor.network_speed,
        )
