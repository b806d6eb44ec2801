"""
Platform Notifier

Reports build lifecycle events to the platform that owns the engines.

HttpPlatformService:
    POST {callback_url}/builds/{build_id}/{event} with a JSON body.
    Retries transient failures (timeouts, transport errors, 5xx and 429)
    with exponential backoff; 4xx responses other than 429 fail at once.
    Raises PlatformError when the event could not be delivered.

LoggingPlatformService:
    Writes one structured log line per event. Used when no callback URL
    is configured (standalone mode).

Exports:
    HttpPlatformService
    LoggingPlatformService
    PlatformEvent
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from config import PlatformConfig
from exceptions import PlatformError
from util_logger import LoggerFactory, ComponentType

from .interface_repository import IPlatformService


class PlatformEvent(str, Enum):
    """Callback path segment per lifecycle event."""

    STARTED = "started"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAULTED = "faulted"
    RESTARTING = "restarting"


_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class HttpPlatformService(IPlatformService):
    """
    Platform notifier over HTTP callbacks.
    """

    def __init__(self, config: PlatformConfig, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize notifier.

        Args:
            config: Platform configuration (callback_url required)
            client: Optional pre-built client (tests inject a MockTransport)
        """
        if not config.callback_url:
            raise ValueError("HttpPlatformService requires PLATFORM_CALLBACK_URL")
        self.config = config
        self._client = client
        self._owns_client = client is None
        self.logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "HttpPlatformService")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"X-Api-Key": self.config.api_key} if self.config.api_key else {}
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _post(self, build_id: str, event: PlatformEvent, payload: Optional[Dict[str, Any]] = None) -> None:
        client = await self._get_client()
        url = f"{self.config.callback_url}/builds/{build_id}/{event.value}"
        body = {"build_id": build_id, "event": event.value, **(payload or {})}

        last_error = None
        for attempt in range(1, self.config.max_retries + 1):
            try:
                response = await client.post(url, json=body)
                if response.is_success:
                    self.logger.info(
                        f"📣 Platform notified: build {build_id} {event.value}",
                        extra={'custom_dimensions': {'build_id': build_id, 'event': event.value}}
                    )
                    return
                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                if response.status_code not in _RETRYABLE_STATUS:
                    break
            except httpx.TimeoutException as e:
                last_error = f"Timeout: {e}"
            except httpx.RequestError as e:
                last_error = f"Request error: {e}"

            self.logger.warning(
                f"⚠️ Platform callback {event.value} for build {build_id} failed "
                f"(attempt {attempt}/{self.config.max_retries}): {last_error}"
            )
            if attempt < self.config.max_retries:
                await asyncio.sleep(self.config.retry_base_delay_seconds * 2 ** (attempt - 1))

        self.logger.error(f"❌ Platform callback {event.value} for build {build_id} not delivered: {last_error}")
        raise PlatformError(f"Failed to deliver '{event.value}' for build {build_id}: {last_error}")

    async def build_started(self, build_id: str) -> None:
        await self._post(build_id, PlatformEvent.STARTED)

    async def build_completed(self, build_id: str, train_size: int, confidence: float) -> None:
        await self._post(build_id, PlatformEvent.COMPLETED, {"train_size": train_size, "confidence": confidence})

    async def build_canceled(self, build_id: str) -> None:
        await self._post(build_id, PlatformEvent.CANCELED)

    async def build_faulted(self, build_id: str, message: str) -> None:
        await self._post(build_id, PlatformEvent.FAULTED, {"message": message})

    async def build_restarting(self, build_id: str) -> None:
        await self._post(build_id, PlatformEvent.RESTARTING)


class LoggingPlatformService(IPlatformService):
    """
    Platform notifier that only logs.
    """

    def __init__(self):
        self.logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "LoggingPlatformService")

    def _log(self, build_id: str, event: PlatformEvent, **fields: Any) -> None:
        self.logger.info(
            f"📣 Build {build_id} {event.value}",
            extra={'custom_dimensions': {'build_id': build_id, 'event': event.value, **fields}}
        )

    async def build_started(self, build_id: str) -> None:
        self._log(build_id, PlatformEvent.STARTED)

    async def build_completed(self, build_id: str, train_size: int, confidence: float) -> None:
        self._log(build_id, PlatformEvent.COMPLETED, train_size=train_size, confidence=confidence)

    async def build_canceled(self, build_id: str) -> None:
        self._log(build_id, PlatformEvent.CANCELED)

    async def build_faulted(self, build_id: str, message: str) -> None:
        self._log(build_id, PlatformEvent.FAULTED, message=message)

    async def build_restarting(self, build_id: str) -> None:
        self._log(build_id, PlatformEvent.RESTARTING)
