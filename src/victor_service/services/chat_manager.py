"""Task chats between a task owner and another user."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from victor_commons.exceptions import ServiceError
from victor_service.logging import get_logger
from victor_service.services.common import check_length, new_id, now_iso, require_string

if TYPE_CHECKING:
    from victor_service.services.chat_store import ChatStore
    from victor_service.services.notification_service import NotificationService
    from victor_service.services.task_store import TaskStore
    from victor_service.services.user_store import UserStore


class ChatManager:
    """
    Manages chats tied to a task.

    A chat always involves the task owner and exactly one other user,
    and only those two participants can read or write it.
    """

    def __init__(
        self,
        store: ChatStore,
        users: UserStore,
        tasks: TaskStore,
        notifications: NotificationService,
        max_message_length: int,
    ) -> None:
        self._store = store
        self._users = users
        self._tasks = tasks
        self._notifications = notifications
        self._max_message_length = max_message_length
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _require_chat(self, chat_id: str, user: dict[str, Any]) -> dict[str, Any]:
        chat = self._store.get_chat(chat_id)
        if chat is None:
            raise ServiceError("CHAT_NOT_FOUND", "Chat not found", 404, {"chat_id": chat_id})
        if user["user_id"] not in chat["participants"]:
            raise ServiceError("FORBIDDEN", "You are not a participant in this chat", 403, {})
        return chat

    def _decorate(self, chat: dict[str, Any], user_id: str) -> dict[str, Any]:
        """Add the other participant and task title for display."""
        other_id = next(
            (participant for participant in chat["participants"] if participant != user_id),
            user_id,
        )
        other = self._users.get_user(other_id)
        task = self._tasks.get_task(chat["task_id"])
        return {
            **chat,
            "other_participant": {
                "user_id": other_id,
                "fullname": None if other is None else other["fullname"],
            },
            "task_title": None if task is None else task["title"],
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_chat(self, user: dict[str, Any], data: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        """
        Open the chat between the caller and recipient about a task.

        Returns:
            ``(chat, created)``. An existing chat is returned as-is.
        """
        task_id = require_string(data, "task_id")
        recipient_id = require_string(data, "recipient_id")

        if recipient_id == user["user_id"]:
            raise ServiceError("INVALID_RECIPIENT", "You cannot chat with yourself", 400, {})
        if self._users.get_user(recipient_id) is None:
            raise ServiceError(
                "USER_NOT_FOUND",
                "Recipient not found",
                404,
                {"user_id": recipient_id},
            )
        task = self._tasks.get_task(task_id)
        if task is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {"task_id": task_id})
        if task["user_id"] not in (user["user_id"], recipient_id):
            raise ServiceError(
                "FORBIDDEN",
                "Chats must include the task owner",
                403,
                {},
            )

        chat, created = self._store.get_or_create_chat(
            new_id("chat"),
            task_id,
            (user["user_id"], recipient_id),
            now_iso(),
        )
        if created:
            self._logger.info(
                "Chat created",
                extra={"chat_id": chat["chat_id"], "task_id": task_id},
            )
        return self._decorate(chat, user["user_id"]), created

    def list_chats(self, user: dict[str, Any]) -> list[dict[str, Any]]:
        """The caller's chats, most recently active first."""
        return [
            self._decorate(chat, user["user_id"])
            for chat in self._store.list_chats_for_user(user["user_id"])
        ]

    def get_chat(self, chat_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Fetch one chat the caller participates in."""
        return self._decorate(self._require_chat(chat_id, user), user["user_id"])

    def list_messages(
        self,
        chat_id: str,
        user: dict[str, Any],
        *,
        offset: int | None,
        limit: int | None,
    ) -> dict[str, Any]:
        """A chat's messages, oldest first."""
        self._require_chat(chat_id, user)
        return {
            "chat_id": chat_id,
            "messages": self._store.list_messages(chat_id, offset=offset, limit=limit),
        }

    def send_message(
        self,
        chat_id: str,
        user: dict[str, Any],
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Post a message and notify the other participant."""
        chat = self._require_chat(chat_id, user)
        content = require_string(data, "content", error="INVALID_MESSAGE")
        check_length(content, self._max_message_length, "MESSAGE_TOO_LONG", "Message")

        recipient_id = next(
            participant for participant in chat["participants"] if participant != user["user_id"]
        )
        recipient = self._users.get_user(recipient_id)
        task = self._tasks.get_task(chat["task_id"])

        message = {
            "message_id": new_id("msg"),
            "chat_id": chat_id,
            "task_id": chat["task_id"],
            "task_title": None if task is None else task["title"],
            "sender_id": user["user_id"],
            "sender_name": user["fullname"],
            "recipient_id": recipient_id,
            "recipient_name": "" if recipient is None else recipient["fullname"],
            "content": content,
            "read": False,
            "created_at": now_iso(),
        }
        self._store.insert_message(message)

        self._notifications.notify(
            recipient_id,
            "message",
            f"New message from {user['fullname']}",
            sender_id=user["user_id"],
            task_id=chat["task_id"],
            chat_id=chat_id,
        )
        self._logger.info(
            "Message sent",
            extra={"chat_id": chat_id, "message_id": message["message_id"]},
        )
        return message

    def mark_read(self, chat_id: str, user: dict[str, Any]) -> dict[str, int]:
        """Mark the caller's incoming messages in a chat as read."""
        self._require_chat(chat_id, user)
        return {"marked": self._store.mark_read(chat_id, user["user_id"])}

    def unread_count(self, user: dict[str, Any]) -> dict[str, int]:
        """Unread incoming messages across all of the caller's chats."""
        return {"unread_count": self._store.count_unread(user["user_id"])}

    def close(self) -> None:
        """Close the underlying store."""
        self._store.close()
