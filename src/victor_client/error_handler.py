"""User-facing error messages and connection recovery."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

import httpx

from victor_client.endpoints import API_URL_KEY, normalize_endpoints
from victor_client.exceptions import ApiError, ApiUnavailableError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from victor_client.api_manager import ApiManager

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request timed out. The server might be overloaded or unavailable."
NETWORK_MESSAGE = "Network error. Please check your connection and try again."
UNAVAILABLE_MESSAGE = "Failed to connect to any API server. Please try again later."
FALLBACK_TIMEOUT_SECONDS = 10.0


class ErrorHandler:
    """Turns failures into messages and looks for another server to use."""

    def __init__(self, api: ApiManager) -> None:
        self._api = api

    @staticmethod
    def handle_api_error(exc: BaseException, fallback: str = "An error occurred") -> str:
        """Map an exception to a message fit to show a user."""
        logger.warning("API error: %r", exc)
        if isinstance(exc, httpx.TimeoutException):
            return TIMEOUT_MESSAGE
        if isinstance(exc, httpx.TransportError):
            return NETWORK_MESSAGE
        return str(exc) or fallback

    async def try_different_api_urls(
        self,
        path: str,
        *,
        method: str = "GET",
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Try the request once against every endpoint, without retries.

        The first endpoint that answers 2xx becomes the working one.

        Raises:
            ApiError: A server answered 4xx.
            ApiUnavailableError: No endpoint answered successfully.
        """
        if not path.startswith("/"):
            path = f"/{path}"
        request_headers = self._api.build_headers(headers)

        for base_url in self._api.registry.endpoints:
            try:
                result = await self._api.attempt(
                    base_url,
                    method,
                    path,
                    json=json,
                    params=params,
                    headers=request_headers,
                    timeout=FALLBACK_TIMEOUT_SECONDS,
                )
            except ApiError as exc:
                if exc.is_client_error:
                    raise
                logger.warning("Fallback %s%s answered %s", base_url, path, exc.status_code)
            except httpx.HTTPError as exc:
                logger.warning("Fallback %s%s unreachable: %s", base_url, path, exc)
            else:
                self._api.registry.mark_working(base_url)
                return result

        self._api.registry.connection_failed = True
        raise ApiUnavailableError(UNAVAILABLE_MESSAGE)

    async def check_server_status(self, preferred: str | None = None) -> str | None:
        """
        Return the first reachable server.

        Tries preferred, then the stored URL, then every configured endpoint.
        """
        candidates = normalize_endpoints(
            [preferred, self._api.state.get(API_URL_KEY), *self._api.registry.endpoints]
        )
        for url in candidates:
            if await self._api.test_endpoint(url):
                self._api.registry.mark_working(url)
                return url
        logger.warning("No API server responded to the status probe")
        return None

    async def recover_from_connection_error(
        self,
        callback: Callable[[str], Awaitable[Any] | Any],
    ) -> bool:
        """Find a working server and hand its URL to callback; False if none."""
        url = await self.check_server_status()
        if url is None:
            return False
        result = callback(url)
        if inspect.isawaitable(result):
            await result
        return True
