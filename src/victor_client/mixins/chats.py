"""Chat mixin."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from victor_client.api_manager import ApiManager


class _ChatClient(Protocol):
    api: ApiManager


class ChatMixin:
    """Chat and message calls."""

    async def list_chats(self: _ChatClient) -> list[dict[str, Any]]:
        """The user's chats, most recently active first."""
        result = await self.api.get("/api/chats")
        return result["chats"]

    async def create_chat(self: _ChatClient, task_id: str, recipient_id: str) -> dict[str, Any]:
        """Open (or reuse) the chat with recipient_id about task_id."""
        return await self.api.post(
            "/api/chats/create",
            {"task_id": task_id, "recipient_id": recipient_id},
        )

    async def get_chat(self: _ChatClient, chat_id: str) -> dict[str, Any]:
        """Fetch one chat."""
        return await self.api.get(f"/api/chats/{chat_id}")

    async def list_messages(
        self: _ChatClient,
        chat_id: str,
        offset: int | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """A chat's messages, oldest first."""
        params = {
            key: value
            for key, value in (("offset", offset), ("limit", limit))
            if value is not None
        }
        result = await self.api.get(f"/api/chats/{chat_id}/messages", params=params or None)
        return result["messages"]

    async def send_message(self: _ChatClient, chat_id: str, content: str) -> dict[str, Any]:
        """Post a message."""
        return await self.api.post(f"/api/chats/{chat_id}/messages", {"content": content})

    async def mark_chat_read(self: _ChatClient, chat_id: str) -> int:
        """Mark incoming messages in a chat read; returns how many changed."""
        result = await self.api.post(f"/api/chats/{chat_id}/read")
        return result["marked"]

    async def unread_messages(self: _ChatClient) -> int:
        """Unread incoming messages across all chats."""
        result = await self.api.get("/api/chats/unread")
        return result["unread_count"]
