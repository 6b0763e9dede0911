"""Unit tests for the condition monitor"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config import AppConfig
from src.models.conditions import ActivityEvent, NetworkSpeed
from src.services.condition_monitor import ConditionMonitor
from src.services.network_probe import ProbeError


def _monitor(probe=None, hint=None, **overrides) -> ConditionMonitor:
    app_config = AppConfig(
        activity_timeout_seconds=overrides.pop("activity_timeout_seconds", 0.05),
        network_probe_debounce_seconds=overrides.pop("network_probe_debounce_seconds", 0.01),
        **overrides,
    )
    return ConditionMonitor(
        probe=probe or AsyncMock(return_value=50.0),
        app_config=app_config,
        effective_type_hint=hint,
    )


class TestUserActivity:
    """Test activity tracking and the inactivity timer"""

    @pytest.mark.asyncio
    async def test_starts_idle(self):
        monitor = _monitor()

        assert monitor.is_user_active is False
        assert monitor.snapshot().is_user_active is False

    @pytest.mark.asyncio
    async def test_activity_flips_active_then_idle_after_timeout(self):
        monitor = _monitor()
        changes = []
        monitor.subscribe_activity(changes.append)

        monitor.record_activity(ActivityEvent.KEY)
        monitor.record_activity(ActivityEvent.POINTER)

        assert monitor.is_user_active is True
        # Only the transition is reported
        assert changes == [True]

        await asyncio.sleep(0.15)

        assert monitor.is_user_active is False
        assert changes == [True, False]
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_activity_restarts_timer(self):
        monitor = _monitor(activity_timeout_seconds=0.1)

        monitor.record_activity()
        await asyncio.sleep(0.06)
        monitor.record_activity(ActivityEvent.SCROLL)
        await asyncio.sleep(0.06)

        # 0.12s since first event but only 0.06s since the last one
        assert monitor.is_user_active is True
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_focus_lost_uses_grace_window(self):
        monitor = _monitor()
        monitor.record_activity()

        monitor.focus_lost()

        assert monitor.is_user_active is True
        await asyncio.sleep(0.15)
        assert monitor.is_user_active is False
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_focus_gained_flips_active_immediately(self):
        monitor = _monitor()
        changes = []
        monitor.subscribe_activity(changes.append)

        monitor.focus_gained()

        assert monitor.is_user_active is True
        assert changes == [True]
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_seconds_since_last_activity(self):
        now = [100.0]
        monitor = ConditionMonitor(
            probe=AsyncMock(return_value=50.0),
            app_config=AppConfig(activity_timeout_seconds=60),
            clock=lambda: now[0],
        )

        monitor.record_activity()
        now[0] = 112.5

        assert monitor.seconds_since_last_activity() == 12.5
        assert monitor.snapshot().seconds_since_last_activity == 12.5
        await monitor.stop()


class TestSubscriptions:
    """Test observer registration and failure isolation"""

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_block_others(self):
        monitor = _monitor()
        failing = MagicMock(side_effect=RuntimeError("listener broke"))
        received = []
        monitor.subscribe_activity(failing)
        monitor.subscribe_activity(received.append)

        monitor.record_activity()

        failing.assert_called_once_with(True)
        assert received == [True]
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self):
        monitor = _monitor(probe=AsyncMock(return_value=1500.0))
        received = []
        unsubscribe = monitor.subscribe_network(received.append)

        unsubscribe()
        unsubscribe()  # idempotent
        await monitor.probe_network()

        assert monitor.network_speed == NetworkSpeed.SLOW
        assert received == []

    @pytest.mark.asyncio
    async def test_callback_may_unsubscribe_itself(self):
        monitor = _monitor()
        received = []
        unsubscribe = None

        def once(active):
            received.append(active)
            unsubscribe()

        unsubscribe = monitor.subscribe_activity(once)
        other = []
        monitor.subscribe_activity(other.append)

        monitor.record_activity()
        monitor.focus_lost()
        await asyncio.sleep(0.15)

        assert received == [True]
        assert other == [True, False]
        await monitor.stop()


class TestNetworkSpeed:
    """Test probing and classification"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "latency_ms,expected",
        [
            (50.0, NetworkSpeed.FAST),
            (750.0, NetworkSpeed.MODERATE),
            (1500.0, NetworkSpeed.SLOW),
        ],
    )
    async def test_latency_classification(self, latency_ms, expected):
        monitor = _monitor(probe=AsyncMock(return_value=latency_ms))

        assert await monitor.probe_network() == expected
        assert monitor.network_speed == expected

    @pytest.mark.asyncio
    async def test_only_changes_are_reported(self):
        probe = AsyncMock(side_effect=[100.0, 120.0, 1500.0, 1800.0])
        monitor = _monitor(probe=probe)
        received = []
        monitor.subscribe_network(received.append)

        for _ in range(4):
            await monitor.probe_network()

        assert received == [NetworkSpeed.SLOW]

    @pytest.mark.asyncio
    async def test_probe_failure_falls_back_to_moderate(self):
        monitor = _monitor(probe=AsyncMock(side_effect=ProbeError("http://probe", "down")))
        received = []
        monitor.subscribe_network(received.append)

        speed = await monitor.probe_network()

        assert speed == NetworkSpeed.MODERATE
        assert received == [NetworkSpeed.MODERATE]

    @pytest.mark.asyncio
    async def test_effective_type_hint_downgrades(self):
        monitor = _monitor(probe=AsyncMock(return_value=20.0), hint=lambda: "2g")

        assert await monitor.probe_network() == NetworkSpeed.SLOW

    @pytest.mark.asyncio
    async def test_effective_type_hint_never_upgrades(self):
        monitor = _monitor(probe=AsyncMock(return_value=1500.0), hint=lambda: "3g")

        assert await monitor.probe_network() == NetworkSpeed.SLOW

    @pytest.mark.asyncio
    async def test_connectivity_changes_are_debounced(self):
        probe = AsyncMock(return_value=50.0)
        monitor = _monitor(probe=probe)

        monitor.notify_connectivity_change()
        monitor.notify_connectivity_change()
        monitor.notify_connectivity_change()
        await asyncio.sleep(0.1)

        assert probe.await_count == 1
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_start_probes_immediately(self):
        probe = AsyncMock(return_value=1500.0)
        monitor = _monitor(probe=probe, network_probe_interval_seconds=60)

        monitor.start()
        await asyncio.sleep(0.01)

        assert probe.await_count == 1
        assert monitor.network_speed == NetworkSpeed.SLOW
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_stop_clears_subscribers(self):
        monitor = _monitor(probe=AsyncMock(return_value=1500.0))
        received = []
        monitor.subscribe_network(received.append)

        await monitor.stop()
        await monitor.probe_network()

        assert received == []
