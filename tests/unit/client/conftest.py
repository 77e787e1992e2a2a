"""Client test fixtures: configs, a controllable clock, and a live app transport."""

from __future__ import annotations

import os
from typing import Any

import httpx
import pytest
from httpx import ASGITransport

from tests.helpers import make_config_yaml
from victor_client.config import ApiConfig, ClientSettings, NetworkConfig, StorageConfig
from victor_service.app import create_app
from victor_service.config import clear_settings_cache
from victor_service.core.lifespan import lifespan
from victor_service.core.state import reset_app_state

PRIMARY = "http://primary.test"
BACKUP = "http://backup.test"


def make_api_config(endpoints: list[str] | None = None, **overrides: Any) -> ApiConfig:
    """ApiConfig with fast defaults for tests."""
    values: dict[str, Any] = {
        "endpoints": endpoints if endpoints is not None else [PRIMARY, BACKUP],
        "probe_path": "/api/status",
        "probe_timeout_seconds": 1,
        "request_timeout_seconds": 1,
        "retries": 2,
        "retry_backoff_seconds": 0.5,
        "check_interval_seconds": 60,
    }
    values.update(overrides)
    return ApiConfig(**values)


def make_network_config(**overrides: Any) -> NetworkConfig:
    """NetworkConfig pointing at the primary test host."""
    values: dict[str, Any] = {
        "probe_url": f"{PRIMARY}/api/status",
        "check_interval_seconds": 30,
        "timeout_seconds": 1,
    }
    values.update(overrides)
    return NetworkConfig(**values)


class FakeClock:
    """A monotonic clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RoutingTransport(httpx.AsyncBaseTransport):
    """Sends requests to an ASGI app unless their host is marked down."""

    def __init__(self, app: Any) -> None:
        self._asgi = ASGITransport(app=app)
        self.down_hosts: set[str] = set()
        self.hosts_seen: list[str] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.hosts_seen.append(request.url.host)
        if request.url.host in self.down_hosts:
            raise httpx.ConnectError("Connection refused", request=request)
        return await self._asgi.handle_async_request(request)


@pytest.fixture
def clock() -> FakeClock:
    """A controllable clock."""
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    """A sleep that returns immediately."""
    return RecordingSleep()


@pytest.fixture
async def service_app(tmp_path):
    """A running marketplace service on a temporary database."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(make_config_yaml(tmp_path))
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    app = create_app()
    async with lifespan(app):
        yield app

    reset_app_state()
    clear_settings_cache()
    os.environ.pop("CONFIG_PATH", None)


@pytest.fixture
def transport(service_app) -> RoutingTransport:
    """Transport into the running service."""
    return RoutingTransport(service_app)


@pytest.fixture
def client_settings(tmp_path) -> ClientSettings:
    """Client settings with a primary and a backup endpoint and no backoff."""
    return ClientSettings(
        api=make_api_config(retries=1, retry_backoff_seconds=0),
        network=make_network_config(),
        storage=StorageConfig(state_path=str(tmp_path / "client-state.json")),
    )
