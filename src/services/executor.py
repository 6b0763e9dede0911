"""Contract for the component that performs feed refresh work, plus an HTTP client for it"""

import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from src.config import AppConfig, config
from src.models.refresh_progress import RefreshProgress, RefreshResponse, RefreshSummary

logger = logging.getLogger(__name__)


class ExecutorError(Exception):
    """Raised when the refresh executor cannot complete a request"""

    def __init__(self, operation: str, status_code: int | None = None, message: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.message = message
        super().__init__(f"Executor {operation} failed: {message}")


class SummaryNotFoundError(ExecutorError):
    """Raised when no refresh batch has completed yet"""

    def __init__(self, message: str = "no refresh summary available"):
        super().__init__("get_last_summary", status_code=404, message=message)


class RefreshExecutor(Protocol):
    """Performs the actual fetch/parse/store work for feeds"""

    async def refresh_all(self) -> RefreshResponse: ...

    async def refresh_single(self, feed_id: int) -> RefreshResponse: ...

    async def get_progress(self) -> RefreshProgress: ...

    async def get_last_summary(self) -> RefreshSummary: ...


class HttpRefreshExecutor:
    """Talks to a feed backend exposing the refresh endpoints over HTTP"""

    def __init__(
        self,
        base_url: str | None = None,
        app_config: AppConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize executor client

        Args:
            base_url: Backend base URL (defaults to executor_base_url)
            app_config: Application configuration (defaults to the global config)
            client: Preconfigured client, mainly for tests
        """
        self.config = app_config or config
        self.base_url = (base_url or self.config.executor_base_url).rstrip("/")
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.config.executor_timeout_seconds),
        )

    async def __aenter__(self) -> "HttpRefreshExecutor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(self, operation: str, method: str, path: str) -> httpx.Response:
        try:
            response = await self.client.request(method, path)
        except httpx.TimeoutException as e:
            raise ExecutorError(operation, message=f"Timeout: {e}") from e
        except httpx.HTTPError as e:
            raise ExecutorError(operation, message=f"Network error: {e}") from e

        if response.status_code >= 400 and response.status_code != 404:
            raise ExecutorError(
                operation,
                status_code=response.status_code,
                message=f"HTTP {response.status_code}: {response.text[:100]}",
            )
        return response

    async def _start_batch(self, operation: str, path: str) -> RefreshResponse:
        response = await self._request(operation, "POST", path)
        if response.status_code == 404:
            raise ExecutorError(operation, status_code=404, message="Not found")

        try:
            result = RefreshResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ExecutorError(operation, message=f"Invalid response: {e}") from e

        if not result.success:
            raise ExecutorError(operation, message=result.message or "Refresh rejected")

        logger.info(f"{operation}: {result.message} ({result.total_feeds} feeds)")
        return result

    async def refresh_all(self) -> RefreshResponse:
        return await self._start_batch("refresh_all", "/refresh")

    async def refresh_single(self, feed_id: int) -> RefreshResponse:
        return await self._start_batch("refresh_single", f"/feeds/{feed_id}/refresh")

    async def get_progress(self) -> RefreshProgress:
        response = await self._request("get_progress", "GET", "/refresh/progress")
        if response.status_code == 404:
            raise ExecutorError("get_progress", status_code=404, message="Not found")

        try:
            return RefreshProgress.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ExecutorError("get_progress", message=f"Invalid response: {e}") from e

    async def get_last_summary(self) -> RefreshSummary:
        response = await self._request("get_last_summary", "GET", "/refresh/summary")
        if response.status_code == 404:
            raise SummaryNotFoundError()

        try:
            data = response.json()
            if data is None:
                raise SummaryNotFoundError()
            return RefreshSummary.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise ExecutorError("get_last_summary", message=f"Invalid response: {e}") from e
