"""Shared fixtures for scheduler tests"""

import asyncio
from datetime import datetime, timedelta

import pytest


class FakeClock:
    """Manually advanced wall clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


async def instant_sleep(_seconds: float) -> None:
    # Yield to the loop without waiting
    await asyncio.sleep(0)


@pytest.fixture
def clock():
    """Clock fixed at 14:00 on a weekday"""
    return FakeClock(datetime(2026, 3, 10, 14, 0, 0))


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "settings.yaml"
