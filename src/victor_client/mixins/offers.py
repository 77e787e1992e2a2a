"""Offer mixin with a local cache used when the API cannot be reached."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from victor_client.api_manager import TOKEN_KEY
from victor_client.exceptions import ApiError, ApiUnavailableError

if TYPE_CHECKING:
    from victor_client.api_manager import ApiManager
    from victor_client.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

OFFERS_CACHE_KEY = "offers_cache"


class _OfferClient(Protocol):
    api: ApiManager
    errors: ErrorHandler

    def _cached_offers(self, task_id: str) -> list[dict[str, Any]] | None: ...

    def _cache_offers(self, task_id: str, offers: list[dict[str, Any]]) -> None: ...


class OfferMixin:
    """Offer calls."""

    def _cached_offers(self: _OfferClient, task_id: str) -> list[dict[str, Any]] | None:
        cache = self.api.state.get(OFFERS_CACHE_KEY) or {}
        return cache.get(task_id)

    def _cache_offers(self: _OfferClient, task_id: str, offers: list[dict[str, Any]]) -> None:
        cache = dict(self.api.state.get(OFFERS_CACHE_KEY) or {})
        cache[task_id] = offers
        self.api.state.set(OFFERS_CACHE_KEY, cache)

    async def fetch_offers(self: _OfferClient, task_id: str) -> list[dict[str, Any]]:
        """
        Offers on a task visible to the logged-in user.

        Falls back to the cached copy when logged out or when the API
        fails, and to a one-pass sweep of every endpoint when there is
        nothing cached.
        """
        path = f"/api/tasks/{task_id}/offers"
        cached = self._cached_offers(task_id)

        if not self.api.state.get(TOKEN_KEY):
            if cached is not None:
                return cached
            msg = "Authentication required to view offers"
            raise ApiError(msg, 401, error="AUTH_REQUIRED")

        try:
            result = await self.api.get(path)
        except (ApiError, ApiUnavailableError, httpx.HTTPError) as exc:
            if cached is not None:
                logger.warning("Serving cached offers for %s: %s", task_id, exc)
                return cached
            if isinstance(exc, ApiError) and exc.is_client_error:
                raise
            result = await self.errors.try_different_api_urls(path)

        offers = result["offers"]
        self._cache_offers(task_id, offers)
        return offers

    async def submit_offer(
        self: _OfferClient,
        task_id: str,
        amount: int,
        message: str = "",
    ) -> dict[str, Any]:
        """Make an offer; retries once across every endpoint on failure."""
        path = f"/api/tasks/{task_id}/offers"
        body = {"amount": amount, "message": message}
        try:
            offer = await self.api.post(path, body)
        except (ApiError, ApiUnavailableError, httpx.HTTPError) as exc:
            if isinstance(exc, ApiError) and exc.is_client_error:
                raise
            logger.warning("Offer submission failed, trying other servers: %s", exc)
            offer = await self.errors.try_different_api_urls(path, method="POST", json=body)

        cached = self._cached_offers(task_id)
        if cached is not None:
            self._cache_offers(task_id, [*cached, offer])
        return offer

    async def accept_offer(self: _OfferClient, task_id: str, offer_id: str) -> dict[str, Any]:
        """Accept an offer on one of the user's tasks."""
        return await self.api.post(f"/api/tasks/{task_id}/offers/{offer_id}/accept")

    async def decline_offer(self: _OfferClient, task_id: str, offer_id: str) -> dict[str, Any]:
        """Decline an offer on one of the user's tasks."""
        return await self.api.post(f"/api/tasks/{task_id}/offers/{offer_id}/decline")

    async def withdraw_offer(self: _OfferClient, task_id: str, offer_id: str) -> dict[str, Any]:
        """Withdraw the user's own offer."""
        return await self.api.post(f"/api/tasks/{task_id}/offers/{offer_id}/withdraw")
