"""Ordered list of API base URLs and the one currently in use."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from victor_client.state_store import StateStore

API_URL_KEY = "api_url"


def normalize_endpoints(urls: Iterable[str | None]) -> list[str]:
    """Drop blanks and trailing slashes, and de-duplicate keeping first occurrence."""
    seen: set[str] = set()
    result: list[str] = []
    for url in urls:
        if not url:
            continue
        cleaned = url.strip().rstrip("/")
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


class EndpointRegistry:
    """
    Candidate API base URLs with a sticky working endpoint.

    The last URL that answered is persisted in the state store and tried
    first on the next run.
    """

    def __init__(self, endpoints: Iterable[str | None], state: StateStore) -> None:
        self._state = state
        preferred = state.get(API_URL_KEY)
        self._endpoints = normalize_endpoints([preferred, *endpoints])
        if not self._endpoints:
            msg = "At least one API endpoint must be configured"
            raise ValueError(msg)
        self._working = self._endpoints[0]
        self.connection_failed = False

    @property
    def endpoints(self) -> list[str]:
        """All candidates in configured order, preferred first."""
        return list(self._endpoints)

    @property
    def working_endpoint(self) -> str:
        """The endpoint requests go to first."""
        return self._working

    def candidates(self) -> list[str]:
        """The working endpoint followed by the remaining candidates."""
        return [self._working, *(url for url in self._endpoints if url != self._working)]

    def mark_working(self, url: str) -> None:
        """Remember url as working and persist it."""
        cleaned = url.rstrip("/")
        if cleaned not in self._endpoints:
            self._endpoints.append(cleaned)
        self._working = cleaned
        self.connection_failed = False
        if self._state.get(API_URL_KEY) != cleaned:
            self._state.set(API_URL_KEY, cleaned)
