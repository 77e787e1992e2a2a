"""Notification mixin."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from victor_client.api_manager import ApiManager


class _NotificationClient(Protocol):
    api: ApiManager


class NotificationMixin:
    """Notification calls."""

    async def notifications(
        self: _NotificationClient,
        unread_only: bool = False,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Notifications with the unread count."""
        params: dict[str, Any] = {}
        if unread_only:
            params["unread_only"] = "true"
        if limit is not None:
            params["limit"] = limit
        return await self.api.get("/api/notifications", params=params or None)

    async def mark_notification_read(
        self: _NotificationClient,
        notification_id: str,
    ) -> dict[str, Any]:
        """Mark one notification read."""
        return await self.api.post(f"/api/notifications/{notification_id}/read")

    async def mark_all_notifications_read(self: _NotificationClient) -> int:
        """Mark every notification read; returns how many changed."""
        result = await self.api.post("/api/notifications/mark-all-read")
        return result["marked"]
