"""VictorClient end-to-end tests against a running service."""

from __future__ import annotations

import httpx
import pytest

from tests.unit.client.conftest import BACKUP, PRIMARY, RoutingTransport
from victor_client import ApiError, VictorClient
from victor_client.api_manager import TOKEN_KEY
from victor_client.config import ClientSettings, load_client_settings
from victor_client.endpoints import API_URL_KEY
from victor_client.mixins.offers import OFFERS_CACHE_KEY


def _client(settings: ClientSettings, transport: RoutingTransport) -> VictorClient:
    return VictorClient(settings, httpx.AsyncClient(transport=transport))


@pytest.mark.unit
class TestVictorClient:
    """Full flows through the client mixins."""

    async def test_task_flow(
        self,
        client_settings: ClientSettings,
        transport: RoutingTransport,
    ) -> None:
        """Two users post, offer, accept, chat, complete and review."""
        async with _client(client_settings, transport) as owner:
            await owner.signup("Alice Owner", "alice@example.com", "secret123")
            assert owner.api.state.get(TOKEN_KEY)
            me = await owner.me()
            task = await owner.create_task(
                "Fix garden fence",
                "Two panels",
                category="Garden",
                budget=80,
            )
            assert task["user_id"] == me["user_id"]

        worker_settings = client_settings.model_copy(
            update={
                "storage": client_settings.storage.model_copy(update={"state_path": None}),
            }
        )
        async with _client(worker_settings, transport) as worker:
            session = await worker.signup("Bob Helper", "bob@example.com", "secret123")
            offer = await worker.submit_offer(task["task_id"], 70, "Can do Saturday")
            assert offer["status"] == "Pending"
            found = await worker.search_tasks(q="fence", min_budget=50)
            assert found["count"] == 1

            async with _client(client_settings, transport) as owner:
                offers = await owner.fetch_offers(task["task_id"])
                assert [o["offer_id"] for o in offers] == [offer["offer_id"]]
                accepted = await owner.accept_offer(task["task_id"], offer["offer_id"])
                assert accepted["task"]["accepted_by_id"] == session["user_id"]

                chat = await owner.create_chat(task["task_id"], session["user_id"])
                await owner.send_message(chat["chat_id"], "See you Saturday")
                assert await worker.unread_messages() == 1
                messages = await worker.list_messages(chat["chat_id"])
                assert [m["content"] for m in messages] == ["See you Saturday"]
                assert await worker.mark_chat_read(chat["chat_id"]) == 1

                await worker.request_completion(task["task_id"])
                done = await owner.verify_completion(task["task_id"])
                assert done["status"] == "Completed"

                review = await owner.submit_review(task["task_id"], 5, "Great")
                assert review["reviewee_id"] == session["user_id"]
                reviews = await owner.user_reviews(session["user_id"])
                assert reviews["average_rating"] == 5

                notes = await worker.notifications(unread_only=True)
                assert notes["unread_count"] >= 1
                assert await worker.mark_all_notifications_read() == notes["unread_count"]

    async def test_client_errors_raise(
        self,
        client_settings: ClientSettings,
        transport: RoutingTransport,
    ) -> None:
        """4xx answers come back as ApiError with the server's code."""
        async with _client(client_settings, transport) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.login("nobody@example.com", "secret123")
            assert exc_info.value.status_code == 401
            assert exc_info.value.error == "INVALID_CREDENTIALS"
            assert client.api.state.get(TOKEN_KEY) is None

    async def test_falls_back_to_backup(
        self,
        client_settings: ClientSettings,
        transport: RoutingTransport,
    ) -> None:
        """A dead primary is skipped and the backup is remembered."""
        transport.down_hosts.add("primary.test")
        async with _client(client_settings, transport) as client:
            status = await client.status()
            assert status["status"] == "ok"
            assert client.api.registry.working_endpoint == BACKUP
            assert client.api.state.get(API_URL_KEY) == BACKUP

        async with _client(client_settings, transport) as client:
            assert client.api.registry.candidates()[0] == BACKUP

    async def test_offers_cache(
        self,
        client_settings: ClientSettings,
        transport: RoutingTransport,
    ) -> None:
        """Cached offers are served when the API is unreachable or logged out."""
        async with _client(client_settings, transport) as owner:
            await owner.signup("Alice Owner", "alice@example.com", "secret123")
            task = await owner.create_task("Fix garden fence", "Two panels")

            with pytest.raises(ApiError):
                await owner.submit_offer(task["task_id"], 50)

            assert await owner.fetch_offers(task["task_id"]) == []
            assert owner.api.state.get(OFFERS_CACHE_KEY) == {task["task_id"]: []}

            transport.down_hosts.update({"primary.test", "backup.test"})
            assert await owner.fetch_offers(task["task_id"]) == []

            owner.logout()
            assert await owner.fetch_offers(task["task_id"]) == []
            with pytest.raises(ApiError) as exc_info:
                await owner.fetch_offers("t-uncached")
            assert exc_info.value.status_code == 401

    async def test_submit_offer_updates_cache(
        self,
        client_settings: ClientSettings,
        transport: RoutingTransport,
    ) -> None:
        """A new offer is appended to an existing cached list."""
        async with _client(client_settings, transport) as owner:
            await owner.signup("Alice Owner", "alice@example.com", "secret123")
            task = await owner.create_task("Fix garden fence", "Two panels")

        async with _client(client_settings, transport) as worker:
            await worker.signup("Bob Helper", "bob@example.com", "secret123")
            assert await worker.fetch_offers(task["task_id"]) == []
            offer = await worker.submit_offer(task["task_id"], 60)
            cached = worker.api.state.get(OFFERS_CACHE_KEY)[task["task_id"]]
            assert [o["offer_id"] for o in cached] == [offer["offer_id"]]


@pytest.mark.unit
def test_load_client_settings(tmp_path) -> None:
    """Client YAML loads into typed settings."""
    path = tmp_path / "client.yaml"
    path.write_text(
        f"""
api:
  endpoints: ["{PRIMARY}", "{BACKUP}"]
  probe_path: "/api/status"
  probe_timeout_seconds: 3
  request_timeout_seconds: 8
  retries: 2
  retry_backoff_seconds: 1
  check_interval_seconds: 60
network:
  probe_url: "{PRIMARY}/api/status"
  check_interval_seconds: 30
  timeout_seconds: 5
storage:
  state_path: null
"""
    )
    settings = load_client_settings(path)
    assert settings.api.endpoints == [PRIMARY, BACKUP]
    assert settings.api.retries == 2
    assert settings.storage.state_path is None


@pytest.mark.unit
class TestClientClose:
    """HTTP client ownership on close()."""

    async def test_injected_http_client_left_open(
        self,
        client_settings: ClientSettings,
        transport: RoutingTransport,
    ) -> None:
        """A caller-supplied httpx client survives close() and stays usable."""
        http = httpx.AsyncClient(transport=transport)
        async with VictorClient(client_settings, http) as client:
            await client.status()
        assert not http.is_closed
        response = await http.get(f"{PRIMARY}/api/status")
        assert response.status_code == 200
        await http.aclose()

    async def test_owned_http_clients_closed(self, client_settings: ClientSettings) -> None:
        """Clients built by VictorClient itself are closed exactly once."""
        client = VictorClient(client_settings)
        api_http = client.api._http
        monitor_http = client.network._http
        assert api_http is not monitor_http
        await client.close()
        assert api_http.is_closed
        assert monitor_http.is_closed
