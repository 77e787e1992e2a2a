"""HTTP access to the marketplace API with endpoint fallback and retries."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from victor_client.endpoints import EndpointRegistry
from victor_client.exceptions import ApiError, ApiUnavailableError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from victor_client.config import ApiConfig
    from victor_client.state_store import StateStore

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"


def _decode(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiManager:
    """
    Sends API requests to the first reachable server.

    Each request goes to the working endpoint first and then to the
    other candidates. Each endpoint gets ``retries + 1`` attempts with a
    linear backoff between them. A 4xx answer is raised straight away
    since another server would give the same answer.

    Usage::

        api = ApiManager(settings.api, StateStore(settings.storage.state_path))
        tasks = await api.get("/api/tasks")
        await api.close()
    """

    def __init__(
        self,
        config: ApiConfig,
        state: StateStore,
        http_client: httpx.AsyncClient | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.state = state
        self.registry = EndpointRegistry(config.endpoints, state)
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else httpx.AsyncClient()
        self._sleep = sleep
        self._clock = clock
        self._last_check: float | None = None

    # ------------------------------------------------------------------
    # Endpoint discovery
    # ------------------------------------------------------------------

    async def test_endpoint(self, url: str) -> bool:
        """Probe a base URL; True only for a 2xx answer."""
        try:
            response = await self._http.get(
                f"{url.rstrip('/')}{self.config.probe_path}",
                timeout=self.config.probe_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.debug("Endpoint %s unreachable: %s", url, exc)
            return False
        return response.is_success

    async def find_working_endpoint(self) -> str | None:
        """
        Find a reachable endpoint, probing candidates in order.

        Within ``check_interval_seconds`` of the previous check, and while
        the last sweep succeeded, the current endpoint is returned without
        probing.
        """
        now = self._clock()
        if (
            not self.registry.connection_failed
            and self._last_check is not None
            and now - self._last_check < self.config.check_interval_seconds
        ):
            return self.registry.working_endpoint

        self._last_check = now
        for url in self.registry.endpoints:
            if await self.test_endpoint(url):
                self.registry.mark_working(url)
                logger.info("Using API endpoint %s", url)
                return url

        self.registry.connection_failed = True
        logger.warning("No API endpoint reachable")
        return None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def build_headers(self, headers: dict[str, str] | None = None) -> dict[str, str]:
        """JSON headers plus the stored bearer token unless one was given."""
        merged = {"Accept": "application/json", "Content-Type": "application/json"}
        extra = dict(headers or {})
        token = self.state.get(TOKEN_KEY)
        if token and not any(key.lower() == "authorization" for key in extra):
            merged["Authorization"] = f"Bearer {token}"
        merged.update(extra)
        return merged

    async def attempt(
        self,
        base_url: str,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str],
        timeout: float,
    ) -> Any:
        """
        Send one request to one base URL.

        Raises:
            ApiError: The server answered with a non-2xx status.
            httpx.HTTPError: The server could not be reached.
        """
        response = await self._http.request(
            method,
            f"{base_url}{path}",
            json=json,
            params=params,
            headers=headers,
            timeout=timeout,
        )
        if not response.is_success:
            raise ApiError.from_response(response)
        return _decode(response)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        retries: int | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Send a request, falling back across endpoints.

        Raises:
            ApiError: A 4xx answer, or the last 5xx once every endpoint failed.
            httpx.HTTPError: The last transport error once every endpoint failed.
            ApiUnavailableError: No endpoint was tried.
        """
        if not path.startswith("/"):
            path = f"/{path}"
        request_headers = self.build_headers(headers)
        attempts = (self.config.retries if retries is None else retries) + 1
        request_timeout = self.config.request_timeout_seconds if timeout is None else timeout

        if self.registry.connection_failed:
            await self.find_working_endpoint()

        last_error: Exception | None = None
        for base_url in self.registry.candidates():
            for attempt in range(1, attempts + 1):
                try:
                    result = await self.attempt(
                        base_url,
                        method,
                        path,
                        json=json,
                        params=params,
                        headers=request_headers,
                        timeout=request_timeout,
                    )
                except ApiError as exc:
                    if exc.is_client_error:
                        self.registry.mark_working(base_url)
                        raise
                    last_error = exc
                    logger.warning(
                        "%s %s%s failed with %s (attempt %d/%d)",
                        method,
                        base_url,
                        path,
                        exc.status_code,
                        attempt,
                        attempts,
                    )
                except httpx.HTTPError as exc:
                    last_error = exc
                    logger.warning(
                        "%s %s%s unreachable: %s (attempt %d/%d)",
                        method,
                        base_url,
                        path,
                        exc,
                        attempt,
                        attempts,
                    )
                else:
                    self.registry.mark_working(base_url)
                    return result

                if attempt < attempts:
                    await self._sleep(self.config.retry_backoff_seconds * attempt)

        self.registry.connection_failed = True
        if last_error is None:
            msg = "No API endpoint available"
            raise ApiUnavailableError(msg)
        raise last_error

    async def get(self, path: str, params: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        """GET a JSON resource."""
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, data: Any = None, **kwargs: Any) -> Any:
        """POST a JSON body."""
        return await self.request("POST", path, json=data, **kwargs)

    async def put(self, path: str, data: Any = None, **kwargs: Any) -> Any:
        """PUT a JSON body."""
        return await self.request("PUT", path, json=data, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        """DELETE a resource."""
        return await self.request("DELETE", path, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_http:
            await self._http.aclose()
