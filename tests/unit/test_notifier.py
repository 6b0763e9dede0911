"""Unit tests for refresh notifications"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config import AppConfig
from src.services.notifier import (
    LoggingNotificationBackend,
    NotificationService,
    NotifySendBackend,
    create_backend,
)


def _backend(granted: bool = True) -> MagicMock:
    backend = MagicMock()
    backend.request_permission = MagicMock(return_value=granted)
    backend.show = AsyncMock()
    return backend


class TestNotificationService:
    """Test permission handling and delivery"""

    def test_permission_requested_once(self):
        backend = _backend()
        service = NotificationService(backend=backend)

        assert service.ensure_permission() is True
        assert service.ensure_permission() is True

        backend.request_permission.assert_called_once()

    @pytest.mark.asyncio
    async def test_notify_without_permission_is_suppressed(self):
        backend = _backend()
        service = NotificationService(backend=backend)

        assert await service.notify("Title", "Body") is False

        backend.show.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notify_denied_permission_is_suppressed(self):
        backend = _backend(granted=False)
        service = NotificationService(backend=backend)
        service.ensure_permission()

        assert await service.notify("Title", "Body") is False

        backend.show.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notify_passes_timeout(self):
        backend = _backend()
        service = NotificationService(
            backend=backend, app_config=AppConfig(notification_timeout_seconds=3)
        )
        service.ensure_permission()

        assert await service.notify("Feed Refresh Failed", "Retrying", is_error=True) is True

        backend.show.assert_awaited_once_with("Feed Refresh Failed", "Retrying", True, 3.0)

    @pytest.mark.asyncio
    async def test_backend_failure_is_contained(self):
        backend = _backend()
        backend.show.side_effect = RuntimeError("display unavailable")
        service = NotificationService(backend=backend)
        service.ensure_permission()

        assert await service.notify("Title", "Body") is False

    def test_permission_request_failure_counts_as_denied(self):
        backend = _backend()
        backend.request_permission.side_effect = OSError("no session bus")
        service = NotificationService(backend=backend)

        assert service.ensure_permission() is False


class TestBackends:
    """Test backend selection and availability"""

    def test_create_backend(self):
        assert isinstance(create_backend("log"), LoggingNotificationBackend)
        assert isinstance(create_backend("notify-send"), NotifySendBackend)
        assert isinstance(create_backend("carrier-pigeon"), LoggingNotificationBackend)

    def test_notify_send_permission_depends_on_command(self):
        backend = NotifySendBackend()

        with patch("src.services.notifier.shutil.which", return_value="/usr/bin/notify-send"):
            assert backend.request_permission() is True
        with patch("src.services.notifier.shutil.which", return_value=None):
            assert backend.request_permission() is False

    @pytest.mark.asyncio
    async def test_notify_send_invocation(self):
        process = MagicMock()
        process.communicate = AsyncMock(return_value=(b"", b""))
        process.returncode = 0

        with patch(
            "src.services.notifier.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ) as create:
            await NotifySendBackend().show("Feed Refresh Complete", "Done", False, 5.0)

        args = create.await_args.args
        assert args[0] == "notify-send"
        assert "--expire-time=5000" in args
        assert args[-2:] == ("Feed Refresh Complete", "Done")

    @pytest.mark.asyncio
    async def test_logging_backend(self, caplog):
        backend = LoggingNotificationBackend()

        with caplog.at_level("INFO"):
            await backend.show("Feed Refresh Complete", "Done", False, 5.0)

        assert "Feed Refresh Complete: Done" in caplog.text
