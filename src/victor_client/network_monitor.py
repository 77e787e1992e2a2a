"""Tracks network connectivity and re-discovers the API when it returns."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from victor_client.api_manager import ApiManager
    from victor_client.config import NetworkConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkStatus:
    """A change in connectivity."""

    is_online: bool
    source: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class NetworkMonitor:
    """
    Periodically probes connectivity and notifies listeners on change.

    Any HTTP answer from the probe URL counts as online; only transport
    failures count as offline. When connectivity comes back the API
    manager looks for a working endpoint again.
    """

    def __init__(
        self,
        api: ApiManager,
        config: NetworkConfig,
        http_client: httpx.AsyncClient | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._config = config
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else httpx.AsyncClient()
        self._clock = clock
        self._listeners: list[Callable[[NetworkStatus], Awaitable[Any] | Any]] = []
        self._last_check: float | None = None
        self._stop = asyncio.Event()
        self.is_online = True

    def add_listener(self, listener: Callable[[NetworkStatus], Awaitable[Any] | Any]) -> None:
        """Register a callback for connectivity changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[NetworkStatus], Awaitable[Any] | Any]) -> None:
        """Unregister a callback."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify(self, status: NetworkStatus) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(status)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Network status listener failed")

    async def set_online(self, is_online: bool, source: str) -> None:
        """Record connectivity; on change notify listeners and re-probe the API."""
        was_online = self.is_online
        self.is_online = is_online
        if was_online == is_online:
            return

        logger.info("Network status changed: %s", "online" if is_online else "offline")
        await self._notify(NetworkStatus(is_online=is_online, source=source))

        if is_online:
            url = await self._api.find_working_endpoint()
            logger.info("Network restored. Working API endpoint: %s", url or "none found")

    async def check_connection(self, *, force: bool = False) -> bool:
        """Actively probe connectivity, at most once per check interval unless forced."""
        now = self._clock()
        if (
            not force
            and self._last_check is not None
            and now - self._last_check < self._config.check_interval_seconds
        ):
            return self.is_online
        self._last_check = now

        try:
            await self._http.get(self._config.probe_url, timeout=self._config.timeout_seconds)
        except httpx.HTTPError as exc:
            logger.warning("Active connection check failed: %s", exc)
            online = False
        else:
            online = True

        await self.set_online(online, "active_check")
        return online

    async def test_api_connection(self) -> str | None:
        """Working API endpoint, or None while offline."""
        if not self.is_online:
            return None
        return await self._api.find_working_endpoint()

    async def run(self) -> None:
        """Check connectivity every interval until stop() is called."""
        self._stop.clear()
        while not self._stop.is_set():
            await self.check_connection(force=True)
            try:
                await asyncio.wait_for(
                    self._stop.wait(), timeout=self._config.check_interval_seconds
                )
            except TimeoutError:
                continue

    def stop(self) -> None:
        """Ask run() to return."""
        self._stop.set()

    async def close(self) -> None:
        """Close the probe HTTP client if this monitor created it."""
        if self._owns_http:
            await self._http.aclose()
