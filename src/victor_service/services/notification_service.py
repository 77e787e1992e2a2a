"""User notifications raised by task, offer, and chat activity."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from victor_commons.exceptions import ServiceError
from victor_service.logging import get_logger
from victor_service.services.common import new_id, now_iso

if TYPE_CHECKING:
    from victor_service.services.notification_store import NotificationStore

NOTIFICATION_TYPES: frozenset[str] = frozenset(
    {
        "message",
        "offer_accepted",
        "offer_received",
        "task_completed",
        "task_reminder",
        "system",
    }
)


class NotificationService:
    """Creates and serves per-user notifications."""

    def __init__(self, store: NotificationStore) -> None:
        self._store = store
        self._logger = get_logger(__name__)

    def notify(
        self,
        recipient_id: str,
        notification_type: str,
        message: str,
        *,
        sender_id: str | None = None,
        task_id: str | None = None,
        offer_id: str | None = None,
        chat_id: str | None = None,
    ) -> dict[str, Any]:
        """Record a notification for a user."""
        if notification_type not in NOTIFICATION_TYPES:
            msg = f"Unknown notification type: {notification_type}"
            raise ValueError(msg)

        notification = {
            "notification_id": new_id("ntf"),
            "recipient_id": recipient_id,
            "sender_id": sender_id,
            "type": notification_type,
            "message": message,
            "task_id": task_id,
            "offer_id": offer_id,
            "chat_id": chat_id,
            "read": False,
            "created_at": now_iso(),
        }
        self._store.insert_notification(notification)
        self._logger.debug(
            "Notification created",
            extra={
                "notification_id": notification["notification_id"],
                "recipient_id": recipient_id,
                "type": notification_type,
            },
        )
        return notification

    def list_notifications(
        self,
        user_id: str,
        *,
        unread_only: bool,
        limit: int | None,
    ) -> dict[str, Any]:
        """List a user's notifications along with their unread count."""
        notifications = self._store.list_notifications(
            user_id, unread_only=unread_only, limit=limit
        )
        return {
            "notifications": notifications,
            "unread_count": self._store.count_unread(user_id),
        }

    def mark_read(self, notification_id: str, user_id: str) -> dict[str, Any]:
        """Mark one of the user's notifications as read."""
        if self._store.mark_read(notification_id, user_id) == 0:
            raise ServiceError(
                "NOTIFICATION_NOT_FOUND",
                "Notification not found",
                404,
                {"notification_id": notification_id},
            )
        return {"notification_id": notification_id, "read": True}

    def mark_all_read(self, user_id: str) -> dict[str, int]:
        """Mark all of the user's notifications as read."""
        return {"marked": self._store.mark_all_read(user_id)}

    def close(self) -> None:
        """Close the underlying store."""
        self._store.close()
