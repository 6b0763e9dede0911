"""Latency probe and speed classification for bandwidth-aware refresh"""

import logging
import time
from typing import Awaitable, Callable

import httpx

from src.config import AppConfig, config
from src.models.conditions import NetworkSpeed

logger = logging.getLogger(__name__)

LatencyProbe = Callable[[], Awaitable[float]]

_SPEED_RANK = {NetworkSpeed.SLOW: 0, NetworkSpeed.MODERATE: 1, NetworkSpeed.FAST: 2}

# Platform effective-type hints and the fastest class they allow
_EFFECTIVE_TYPE_CEILING = {
    "slow-2g": NetworkSpeed.SLOW,
    "2g": NetworkSpeed.SLOW,
    "3g": NetworkSpeed.MODERATE,
}


class ProbeError(Exception):
    """Raised when a latency probe does not get a usable response"""

    def __init__(self, url: str, message: str = ""):
        self.url = url
        self.message = message
        super().__init__(f"Network probe to {url} failed: {message}")


def classify_latency(latency_ms: float, app_config: AppConfig | None = None) -> NetworkSpeed:
    """Map a round-trip latency to a speed class"""
    cfg = app_config or config
    if latency_ms > cfg.slow_latency_ms:
        return NetworkSpeed.SLOW
    if latency_ms > cfg.moderate_latency_ms:
        return NetworkSpeed.MODERATE
    return NetworkSpeed.FAST


def apply_effective_type_hint(speed: NetworkSpeed, effective_type: str | None) -> NetworkSpeed:
    """Downgrade a measured speed using a platform connection-type hint"""
    if not effective_type:
        return speed

    ceiling = _EFFECTIVE_TYPE_CEILING.get(effective_type.lower())
    if ceiling is None:
        return speed
    return min(speed, ceiling, key=_SPEED_RANK.__getitem__)


class HttpLatencyProbe:
    """Measures round-trip latency with a small HTTP request"""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url or config.network_probe_url
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or config.network_probe_timeout_seconds),
            follow_redirects=True,
        )

    async def __call__(self) -> float:
        """
        Run one probe

        Returns:
            float: Round-trip latency in milliseconds

        Raises:
            ProbeError: On transport errors or non-success responses
        """
        start = time.perf_counter()
        try:
            response = await self.client.get(self.url, headers={"Cache-Control": "no-cache"})
        except httpx.HTTPError as e:
            raise ProbeError(self.url, str(e)) from e

        latency_ms = (time.perf_counter() - start) * 1000
        if response.status_code >= 400:
            raise ProbeError(self.url, f"HTTP {response.status_code}")

        logger.debug(f"Network probe to {self.url} took {latency_ms:.1f}ms")
        return latency_ms

    async def close(self) -> None:
        await self.client.aclose()
