"""Starts refresh batches and polls the executor for progress with exponential backoff"""

import asyncio
import logging
from typing import Awaitable, Callable

from src.config import AppConfig, config
from src.models.refresh_progress import RefreshProgress, RefreshResponse, RefreshSummary
from src.services.executor import RefreshExecutor

logger = logging.getLogger(__name__)

PROGRESS_UNAVAILABLE = "Failed to get refresh progress after multiple retries"


class RefreshStartError(Exception):
    """Raised when the executor fails to start a refresh batch"""

    def __init__(self, operation: str, message: str = ""):
        self.operation = operation
        self.message = message
        super().__init__(f"Failed to start {operation}: {message}")


class ProgressPoller:
    """
    Owns one refresh session at a time

    A session begins when the executor accepts a batch and ends when a
    progress query reports the batch inactive, when polling gives up after
    too many failed queries, or when stop_refresh() abandons it. Stopping
    only ends local polling; the executor keeps running.
    """

    def __init__(
        self,
        executor: RefreshExecutor,
        app_config: AppConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.executor = executor
        self.config = app_config or config
        self._sleep = sleep

        self.is_refreshing = False
        self.progress: RefreshProgress | None = None
        self.last_summary: RefreshSummary | None = None
        self.error: str | None = None

        self.current_interval_ms: float = self.config.poll_initial_interval_ms
        self.consecutive_failures = 0
        self._poll_task: asyncio.Task | None = None

    async def start_refresh(self) -> bool:
        """Refresh all feeds; returns False without doing anything if a session is active"""
        return await self._start("refresh_all", self.executor.refresh_all)

    async def start_single_feed_refresh(self, feed_id: int) -> bool:
        """Refresh one feed; shares the active-session guard with start_refresh()"""
        return await self._start(
            f"refresh of feed {feed_id}", lambda: self.executor.refresh_single(feed_id)
        )

    async def _start(
        self, operation: str, invoke: Callable[[], Awaitable[RefreshResponse]]
    ) -> bool:
        if self.is_refreshing:
            logger.info(f"Ignoring {operation}: a refresh is already in progress")
            return False

        self.error = None
        self.progress = None
        self.last_summary = None
        self.is_refreshing = True
        try:
            response = await invoke()
        except Exception as e:
            self.error = str(e) or f"Failed to start {operation}"
            self.is_refreshing = False
            logger.error(f"Failed to start {operation}: {e}")
            raise RefreshStartError(operation, str(e)) from e

        logger.info(
            f"Started {operation}: {response.total_feeds} feeds"
            + (
                f", ~{response.estimated_completion_time:.0f}s"
                if response.estimated_completion_time is not None
                else ""
            )
        )
        self._start_polling()
        return True

    def _start_polling(self) -> None:
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
        self._reset_backoff()
        self._poll_task = asyncio.ensure_future(self._poll_loop())

    def _reset_backoff(self) -> None:
        self.current_interval_ms = self.config.poll_initial_interval_ms
        self.consecutive_failures = 0

    async def _poll_loop(self) -> None:
        while True:
            try:
                progress = await self.executor.get_progress()
            except Exception as e:
                logger.warning(f"Failed to poll refresh progress: {e}")
                self.consecutive_failures += 1

                if self.consecutive_failures >= self.config.poll_max_failures:
                    logger.error("Max retry count reached, stopping polling")
                    self.error = PROGRESS_UNAVAILABLE
                    self.is_refreshing = False
                    self._reset_backoff()
                    return

                self.current_interval_ms = min(
                    self.current_interval_ms * self.config.poll_backoff_multiplier,
                    self.config.poll_max_interval_ms,
                )
                logger.info(
                    f"Retrying in {self.current_interval_ms:.0f}ms "
                    f"(attempt {self.consecutive_failures}/{self.config.poll_max_failures})"
                )
                await self._sleep(self.current_interval_ms / 1000)
                continue

            self._reset_backoff()
            self.progress = progress

            if not progress.is_active:
                self.is_refreshing = False
                logger.info(
                    f"Refresh finished: {progress.completed_feeds}/{progress.total_feeds} "
                    f"completed, {progress.failed_feeds} failed"
                )
                await self._fetch_summary()
                return

            await self._sleep(self.current_interval_ms / 1000)

    async def _fetch_summary(self) -> None:
        try:
            self.last_summary = await self.executor.get_last_summary()
        except Exception as e:
            # No summary yet is an expected state, not an error
            logger.info(f"No refresh summary available: {e}")

    async def wait_until_complete(self) -> RefreshSummary | None:
        """Wait for the current session to end; returns the last summary, if any"""
        task = self._poll_task
        if task is not None:
            await asyncio.wait({task})
        return self.last_summary

    def stop_refresh(self) -> None:
        """Abandon local polling and reset backoff; safe to call at any time"""
        self.is_refreshing = False
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = None
        self._reset_backoff()
