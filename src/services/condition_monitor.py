"""Tracks user activity and network speed for smart background refresh"""

import asyncio
import logging
import time
from typing import Callable

from src.config import AppConfig, config
from src.models.conditions import ActivityEvent, ConditionSnapshot, NetworkSpeed
from src.services.network_probe import (
    HttpLatencyProbe,
    LatencyProbe,
    apply_effective_type_hint,
    classify_latency,
)

logger = logging.getLogger(__name__)

ActivityCallback = Callable[[bool], None]
NetworkCallback = Callable[[NetworkSpeed], None]
Unsubscribe = Callable[[], None]


class ConditionMonitor:
    """
    Maintains the user-activity and network-speed signals

    Input handlers call record_activity()/focus_gained()/focus_lost(); the
    platform calls notify_connectivity_change() when the link changes.
    Subscribers are only told about actual changes.
    """

    def __init__(
        self,
        probe: LatencyProbe | None = None,
        app_config: AppConfig | None = None,
        effective_type_hint: Callable[[], str | None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = app_config or config
        self.probe = probe or HttpLatencyProbe(
            url=self.config.network_probe_url,
            timeout=self.config.network_probe_timeout_seconds,
        )
        self.effective_type_hint = effective_type_hint
        self.clock = clock

        self._is_user_active = False
        self._network_speed = NetworkSpeed.FAST
        self._last_activity_time = clock()

        self._activity_callbacks: list[ActivityCallback] = []
        self._network_callbacks: list[NetworkCallback] = []

        self._inactivity_timer: asyncio.TimerHandle | None = None
        self._debounce_timer: asyncio.TimerHandle | None = None
        self._probe_task: asyncio.Task | None = None
        self._debounced_probe: asyncio.Task | None = None

    @property
    def is_user_active(self) -> bool:
        return self._is_user_active

    @property
    def network_speed(self) -> NetworkSpeed:
        return self._network_speed

    def seconds_since_last_activity(self) -> float:
        return max(0.0, self.clock() - self._last_activity_time)

    def snapshot(self) -> ConditionSnapshot:
        return ConditionSnapshot(
            is_user_active=self._is_user_active,
            network_speed=self._network_speed,
            seconds_since_last_activity=self.seconds_since_last_activity(),
        )

    # Subscriptions

    def subscribe_activity(self, callback: ActivityCallback) -> Unsubscribe:
        """Register an activity listener; returns a callable that removes it"""
        self._activity_callbacks.append(callback)
        return self._make_unsubscribe(self._activity_callbacks, callback)

    def subscribe_network(self, callback: NetworkCallback) -> Unsubscribe:
        """Register a network-speed listener; returns a callable that removes it"""
        self._network_callbacks.append(callback)
        return self._make_unsubscribe(self._network_callbacks, callback)

    @staticmethod
    def _make_unsubscribe(callbacks: list, callback: Callable) -> Unsubscribe:
        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _dispatch(self, callbacks: list, value, kind: str) -> None:
        # Iterate over a copy so callbacks may unsubscribe themselves
        for callback in list(callbacks):
            try:
                callback(value)
            except Exception as e:
                logger.error(f"{kind} callback error: {e}", exc_info=True)

    # User activity

    def record_activity(self, event: ActivityEvent = ActivityEvent.POINTER) -> None:
        """Mark input activity and restart the inactivity timer"""
        self._last_activity_time = self.clock()
        logger.debug(f"User activity: {event.value}")
        self._set_user_active(True)
        self._restart_inactivity_timer()

    def focus_gained(self) -> None:
        self.record_activity(ActivityEvent.FOCUS)

    def focus_lost(self) -> None:
        """Start the inactivity countdown without flipping to idle right away"""
        self._restart_inactivity_timer()

    def _restart_inactivity_timer(self) -> None:
        if self._inactivity_timer:
            self._inactivity_timer.cancel()
        loop = asyncio.get_running_loop()
        self._inactivity_timer = loop.call_later(
            self.config.activity_timeout_seconds, self._on_inactivity_timeout
        )

    def _on_inactivity_timeout(self) -> None:
        self._inactivity_timer = None
        self._set_user_active(False)

    def _set_user_active(self, active: bool) -> None:
        if active == self._is_user_active:
            return
        self._is_user_active = active
        logger.info(f"User is now {'active' if active else 'idle'}")
        self._dispatch(self._activity_callbacks, active, "Activity")

    # Network

    async def probe_network(self) -> NetworkSpeed:
        """
        Measure latency and update the speed class

        Probe failures fall back to moderate and are never raised.
        """
        try:
            latency_ms = await self.probe()
            speed = classify_latency(latency_ms, self.config)
            hint = self.effective_type_hint() if self.effective_type_hint else None
            speed = apply_effective_type_hint(speed, hint)
        except Exception as e:
            logger.warning(f"Network speed test failed: {e}")
            speed = NetworkSpeed.MODERATE

        self._set_network_speed(speed)
        return speed

    def _set_network_speed(self, speed: NetworkSpeed) -> None:
        if speed == self._network_speed:
            return
        logger.info(f"Network speed changed: {self._network_speed.value} -> {speed.value}")
        self._network_speed = speed
        self._dispatch(self._network_callbacks, speed, "Network")

    def notify_connectivity_change(self) -> None:
        """Probe again once the link has had time to settle"""
        if self._debounce_timer:
            self._debounce_timer.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_timer = loop.call_later(
            self.config.network_probe_debounce_seconds, self._run_debounced_probe
        )

    def _run_debounced_probe(self) -> None:
        self._debounce_timer = None
        self._debounced_probe = asyncio.ensure_future(self.probe_network())

    async def _probe_periodically(self) -> None:
        while True:
            await self.probe_network()
            await asyncio.sleep(self.config.network_probe_interval_seconds)

    # Lifecycle

    def start(self) -> None:
        """Begin periodic network probing (first probe runs immediately)"""
        if self._probe_task and not self._probe_task.done():
            return
        self._probe_task = asyncio.ensure_future(self._probe_periodically())
        logger.info(
            f"Condition monitor started "
            f"(probe every {self.config.network_probe_interval_seconds:.0f}s)"
        )

    async def stop(self) -> None:
        """Cancel timers and background probes and drop all subscribers"""
        for timer in (self._inactivity_timer, self._debounce_timer):
            if timer:
                timer.cancel()
        self._inactivity_timer = None
        self._debounce_timer = None

        tasks = [t for t in (self._probe_task, self._debounced_probe) if t and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._probe_task = None
        self._debounced_probe = None

        self._activity_callbacks.clear()
        self._network_callbacks.clear()

        close = getattr(self.probe, "close", None)
        if close:
            await close()
        logger.info("Condition monitor stopped")
