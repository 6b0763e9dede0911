"""User-facing notifications for automatic refresh outcomes"""

import asyncio
import logging
import shutil
from typing import Protocol

from src.config import AppConfig, config

logger = logging.getLogger(__name__)


class NotificationBackend(Protocol):
    """Delivers a notification to the user"""

    def request_permission(self) -> bool: ...

    async def show(self, title: str, body: str, is_error: bool, timeout_seconds: float) -> None: ...


class LoggingNotificationBackend:
    """Writes notifications to the log; used when no desktop is available"""

    def request_permission(self) -> bool:
        return True

    async def show(self, title: str, body: str, is_error: bool, timeout_seconds: float) -> None:
        level = logging.WARNING if is_error else logging.INFO
        logger.log(level, f"[notification] {title}: {body}")


class NotifySendBackend:
    """Desktop notifications through the freedesktop notify-send command"""

    def __init__(self, command: str = "notify-send"):
        self.command = command

    def request_permission(self) -> bool:
        return shutil.which(self.command) is not None

    async def show(self, title: str, body: str, is_error: bool, timeout_seconds: float) -> None:
        process = await asyncio.create_subprocess_exec(
            self.command,
            f"--expire-time={int(timeout_seconds * 1000)}",
            f"--urgency={'critical' if is_error else 'normal'}",
            f"--icon={'dialog-error' if is_error else 'view-refresh'}",
            "--app-name=feed-refresh",
            title,
            body,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            raise RuntimeError(
                f"{self.command} exited with {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )


def create_backend(name: str) -> NotificationBackend:
    if name == "notify-send":
        return NotifySendBackend()
    if name != "log":
        logger.warning(f"Unknown notification backend '{name}', using log")
    return LoggingNotificationBackend()


class NotificationService:
    """Emits refresh notifications when the user allowed them"""

    def __init__(
        self, backend: NotificationBackend | None = None, app_config: AppConfig | None = None
    ):
        self.config = app_config or config
        self.backend = backend or create_backend(self.config.notification_backend)
        self.permission_granted: bool | None = None

    def ensure_permission(self) -> bool:
        """Ask the backend for permission once; later calls reuse the answer"""
        if self.permission_granted is None:
            try:
                self.permission_granted = bool(self.backend.request_permission())
            except Exception as e:
                logger.warning(f"Notification permission request failed: {e}")
                self.permission_granted = False
            logger.info(
                f"Notification permission {'granted' if self.permission_granted else 'denied'}"
            )
        return self.permission_granted

    async def notify(self, title: str, body: str, is_error: bool = False) -> bool:
        """
        Show a notification if permission was granted

        Returns:
            bool: Whether the notification was delivered
        """
        if not self.permission_granted:
            logger.debug(f"Notification suppressed (no permission): {title}")
            return False

        try:
            await self.backend.show(
                title, body, is_error, self.config.notification_timeout_seconds
            )
            return True
        except Exception as e:
            # Delivery problems must not affect the refresh loop
            logger.warning(f"Failed to show notification '{title}': {e}")
            return False
