"""VictorClient: the marketplace API client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from victor_client.api_manager import ApiManager
from victor_client.error_handler import ErrorHandler
from victor_client.mixins import (
    AuthMixin,
    ChatMixin,
    NotificationMixin,
    OfferMixin,
    TaskMixin,
)
from victor_client.network_monitor import NetworkMonitor
from victor_client.state_store import StateStore

if TYPE_CHECKING:
    import httpx

    from victor_client.config import ClientSettings


class VictorClient(AuthMixin, TaskMixin, OfferMixin, ChatMixin, NotificationMixin):
    """
    Programmable client for the marketplace API.

    Composes the resource mixins over one ApiManager, which handles
    endpoint fallback and retries. State (working URL, session token,
    offers cache) persists in the configured state file.

    Usage::

        async with VictorClient(load_client_settings()) as client:
            await client.login("ada@example.com", "secret1")
            results = await client.search_tasks(q="garden", sort="budget_high")
    """

    def __init__(
        self,
        settings: ClientSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.api = ApiManager(
            settings.api,
            StateStore(settings.storage.state_path),
            http_client,
        )
        self.errors = ErrorHandler(self.api)
        self.network = NetworkMonitor(self.api, settings.network, http_client)

    async def status(self) -> dict[str, Any]:
        """Server status from the reachability endpoint."""
        return await self.api.get("/api/status")

    async def close(self) -> None:
        """Stop monitoring and close the HTTP clients this client created."""
        self.network.stop()
        await self.network.close()
        await self.api.close()

    async def __aenter__(self) -> VictorClient:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()
