"""ApiManager tests: retries, fallback, discovery throttling."""

from __future__ import annotations

from collections import Counter

import httpx
import pytest

from tests.unit.client.conftest import BACKUP, PRIMARY, FakeClock, RecordingSleep, make_api_config
from victor_client.api_manager import TOKEN_KEY, ApiManager
from victor_client.endpoints import API_URL_KEY
from victor_client.exceptions import ApiError
from victor_client.state_store import StateStore


class FakeServers:
    """MockTransport handler serving canned behaviour per host."""

    def __init__(self) -> None:
        self.behaviour: dict[str, str] = {}
        self.calls: Counter[str] = Counter()
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        base = f"{request.url.scheme}://{request.url.host}"
        self.calls[base] += 1
        self.requests.append(request)
        mode = self.behaviour.get(base, "ok")
        if mode == "down":
            raise httpx.ConnectError("Connection refused", request=request)
        if mode == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if mode == "500":
            return httpx.Response(500, json={"error": "internal_error", "message": "boom"})
        if mode == "404":
            return httpx.Response(404, json={"error": "TASK_NOT_FOUND", "message": "Task not found"})
        return httpx.Response(200, json={"served_by": base, "path": request.url.path})


@pytest.fixture
def servers() -> FakeServers:
    """Both fake servers healthy by default."""
    return FakeServers()


@pytest.fixture
def make_api(servers: FakeServers, sleep: RecordingSleep, clock: FakeClock):
    """Build an ApiManager over the fake servers."""
    created: list[ApiManager] = []

    def _make(state: StateStore | None = None, **overrides) -> ApiManager:
        api = ApiManager(
            make_api_config(**overrides),
            state if state is not None else StateStore(None),
            httpx.AsyncClient(transport=httpx.MockTransport(servers)),
            sleep=sleep,
            clock=clock,
        )
        created.append(api)
        return api

    yield _make


@pytest.mark.unit
class TestRequests:
    """Request routing across endpoints."""

    async def test_success_on_primary(self, make_api, servers: FakeServers) -> None:
        """A healthy primary serves the request once."""
        api = make_api()
        result = await api.get("/api/tasks")
        assert result == {"served_by": PRIMARY, "path": "/api/tasks"}
        assert servers.calls == Counter({PRIMARY: 1})
        assert api.state.get(API_URL_KEY) == PRIMARY
        await api.close()

    async def test_relative_path_gets_leading_slash(self, make_api) -> None:
        """Paths without a leading slash are normalized."""
        api = make_api()
        result = await api.get("api/status")
        assert result["path"] == "/api/status"
        await api.close()

    async def test_5xx_retries_then_falls_back(
        self,
        make_api,
        servers: FakeServers,
        sleep: RecordingSleep,
    ) -> None:
        """Each endpoint gets retries + 1 attempts with linear backoff."""
        servers.behaviour[PRIMARY] = "500"
        api = make_api(retries=2, retry_backoff_seconds=0.5)

        result = await api.get("/api/tasks")

        assert result["served_by"] == BACKUP
        assert servers.calls == Counter({PRIMARY: 3, BACKUP: 1})
        assert sleep.delays == [0.5, 1.0]
        assert api.registry.working_endpoint == BACKUP
        assert api.state.get(API_URL_KEY) == BACKUP

        await api.get("/api/tasks")
        assert servers.calls[PRIMARY] == 3
        await api.close()

    async def test_4xx_is_not_retried(
        self,
        make_api,
        servers: FakeServers,
        sleep: RecordingSleep,
    ) -> None:
        """Client errors surface at once with the server's message."""
        servers.behaviour[PRIMARY] = "404"
        api = make_api()

        with pytest.raises(ApiError) as exc_info:
            await api.get("/api/tasks/t-missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.error == "TASK_NOT_FOUND"
        assert str(exc_info.value) == "Task not found"
        assert servers.calls == Counter({PRIMARY: 1})
        assert sleep.delays == []
        assert api.registry.connection_failed is False
        await api.close()

    async def test_everything_down(self, make_api, servers: FakeServers) -> None:
        """The last transport error is raised and the failure is remembered."""
        servers.behaviour[PRIMARY] = "down"
        servers.behaviour[BACKUP] = "timeout"
        api = make_api(retries=0)

        with pytest.raises(httpx.ReadTimeout):
            await api.get("/api/tasks")

        assert api.registry.connection_failed is True
        assert servers.calls == Counter({PRIMARY: 1, BACKUP: 1})
        await api.close()

    async def test_failed_state_triggers_rediscovery(
        self,
        make_api,
        servers: FakeServers,
    ) -> None:
        """After a total failure the next request probes for a server first."""
        servers.behaviour[PRIMARY] = "down"
        servers.behaviour[BACKUP] = "down"
        api = make_api(retries=0)
        with pytest.raises(httpx.ConnectError):
            await api.get("/api/tasks")

        servers.behaviour[BACKUP] = "ok"
        result = await api.get("/api/tasks")
        assert result["served_by"] == BACKUP
        probe_paths = [r.url.path for r in servers.requests if r.url.path == "/api/status"]
        assert probe_paths
        await api.close()

    async def test_per_call_retry_override(
        self,
        make_api,
        servers: FakeServers,
    ) -> None:
        """retries= on a call overrides the configured count."""
        servers.behaviour[PRIMARY] = "500"
        servers.behaviour[BACKUP] = "500"
        api = make_api(retries=3)

        with pytest.raises(ApiError) as exc_info:
            await api.get("/api/tasks", retries=0)

        assert exc_info.value.status_code == 500
        assert servers.calls == Counter({PRIMARY: 1, BACKUP: 1})
        await api.close()


@pytest.mark.unit
class TestHeaders:
    """Bearer token handling."""

    async def test_stored_token_is_sent(self, make_api, servers: FakeServers) -> None:
        """The session token from state becomes a bearer header."""
        state = StateStore(None)
        state.set(TOKEN_KEY, "tok-123")
        api = make_api(state)
        await api.post("/api/tasks", {"title": "x"})
        request = servers.requests[-1]
        assert request.headers["Authorization"] == "Bearer tok-123"
        assert request.headers["Content-Type"] == "application/json"
        await api.close()

    def test_explicit_authorization_wins(self, make_api) -> None:
        """A caller-supplied Authorization header is kept."""
        state = StateStore(None)
        state.set(TOKEN_KEY, "tok-123")
        api = make_api(state)
        headers = api.build_headers({"authorization": "Bearer other"})
        assert headers["authorization"] == "Bearer other"
        assert "Authorization" not in headers

    def test_no_token_no_header(self, make_api) -> None:
        """Logged-out requests carry no Authorization header."""
        assert "Authorization" not in make_api().build_headers()


@pytest.mark.unit
class TestDiscovery:
    """find_working_endpoint and test_endpoint."""

    async def test_probe_success_and_failure(self, make_api, servers: FakeServers) -> None:
        """Only a 2xx probe answer counts as working."""
        servers.behaviour[PRIMARY] = "500"
        servers.behaviour[BACKUP] = "down"
        api = make_api()
        assert await api.test_endpoint(PRIMARY) is False
        assert await api.test_endpoint(BACKUP) is False
        servers.behaviour[BACKUP] = "ok"
        assert await api.test_endpoint(BACKUP) is True
        await api.close()

    async def test_discovery_is_throttled(
        self,
        make_api,
        servers: FakeServers,
        clock: FakeClock,
    ) -> None:
        """Within the check interval a successful sweep is reused."""
        api = make_api(check_interval_seconds=60)
        assert await api.find_working_endpoint() == PRIMARY
        assert servers.calls[PRIMARY] == 1

        clock.advance(30)
        assert await api.find_working_endpoint() == PRIMARY
        assert servers.calls[PRIMARY] == 1

        clock.advance(31)
        servers.behaviour[PRIMARY] = "down"
        assert await api.find_working_endpoint() == BACKUP
        assert api.registry.working_endpoint == BACKUP
        await api.close()

    async def test_failed_sweep_is_not_throttled(
        self,
        make_api,
        servers: FakeServers,
    ) -> None:
        """After a failed sweep the next call probes again immediately."""
        servers.behaviour[PRIMARY] = "down"
        servers.behaviour[BACKUP] = "down"
        api = make_api()
        assert await api.find_working_endpoint() is None
        assert api.registry.connection_failed is True

        servers.behaviour[PRIMARY] = "ok"
        assert await api.find_working_endpoint() == PRIMARY
        assert api.registry.connection_failed is False
        await api.close()
