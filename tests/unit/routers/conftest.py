"""Router test fixtures backed by a temporary database."""

from __future__ import annotations

import os
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from tests.helpers import auth_header, make_config_yaml, task_payload
from victor_service.app import create_app
from victor_service.config import clear_settings_cache
from victor_service.core.lifespan import lifespan
from victor_service.core.state import reset_app_state


@pytest.fixture
async def app(tmp_path):
    """Create a test app with a temporary database."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(make_config_yaml(tmp_path))
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        yield test_app

    reset_app_state()
    clear_settings_cache()
    os.environ.pop("CONFIG_PATH", None)


@pytest.fixture
async def client(app):
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def signup(
    client: AsyncClient,
    fullname: str,
    email: str,
    password: str = "secret123",
) -> dict[str, Any]:
    """Register a user and return the session payload plus auth headers."""
    response = await client.post(
        "/api/signup",
        json={"fullname": fullname, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    data = response.json()
    data["headers"] = auth_header(data["token"])
    return data


async def create_task(client: AsyncClient, owner: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    """Post a task as owner and return it."""
    response = await client.post(
        "/api/tasks",
        json=task_payload(**overrides),
        headers=owner["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()


async def make_offer(
    client: AsyncClient,
    task_id: str,
    user: dict[str, Any],
    amount: int = 100,
    message: str = "I can do this",
) -> dict[str, Any]:
    """Submit an offer as user and return it."""
    response = await client.post(
        f"/api/tasks/{task_id}/offers",
        json={"amount": amount, "message": message},
        headers=user["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()


async def completed_task(
    client: AsyncClient,
    owner: dict[str, Any],
    worker: dict[str, Any],
) -> dict[str, Any]:
    """Create a task, have worker accept it, and complete it as owner."""
    task = await create_task(client, owner)
    accept = await client.post(f"/api/tasks/{task['task_id']}/accept", headers=worker["headers"])
    assert accept.status_code == 200, accept.text
    done = await client.post(f"/api/tasks/{task['task_id']}/complete", headers=owner["headers"])
    assert done.status_code == 200, done.text
    return done.json()


@pytest.fixture
async def alice(client):
    """A registered task owner."""
    return await signup(client, "Alice Owner", "alice@example.com")


@pytest.fixture
async def bob(client):
    """A registered helper."""
    return await signup(client, "Bob Helper", "bob@example.com")


@pytest.fixture
async def carol(client):
    """A second registered helper."""
    return await signup(client, "Carol Helper", "carol@example.com")
