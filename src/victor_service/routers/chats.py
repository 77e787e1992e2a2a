"""Chat and message endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from victor_service.core.state import get_app_state
from victor_service.routers.validation import parse_pagination, read_json_body, require_user

if TYPE_CHECKING:
    from victor_service.services.chat_manager import ChatManager

router = APIRouter()


def _chat_manager() -> ChatManager:
    state = get_app_state()
    if state.chat_manager is None:
        msg = "ChatManager not initialized"
        raise RuntimeError(msg)
    return state.chat_manager


@router.get("/api/chats")
async def list_chats(request: Request) -> dict[str, Any]:
    """List the caller's chats."""
    user = require_user(request)
    return {"chats": _chat_manager().list_chats(user)}


@router.post("/api/chats/create")
async def create_chat(request: Request) -> JSONResponse:
    """Open or reuse the chat with another user about a task."""
    user = require_user(request)
    data = await read_json_body(request)
    chat, created = _chat_manager().create_chat(user, data)
    return JSONResponse(
        status_code=201 if created else 200,
        content={"chat_id": chat["chat_id"], "created": created, "chat": chat},
    )


# ---------------------------------------------------------------------------
# GET /api/chats/unread (MUST be before GET /api/chats/{chat_id})
# ---------------------------------------------------------------------------


@router.get("/api/chats/unread")
async def unread_count(request: Request) -> dict[str, int]:
    """Count unread incoming messages."""
    user = require_user(request)
    return _chat_manager().unread_count(user)


@router.get("/api/chats/{chat_id}")
async def get_chat(chat_id: str, request: Request) -> dict[str, Any]:
    """Fetch one chat."""
    user = require_user(request)
    return _chat_manager().get_chat(chat_id, user)


@router.get("/api/chats/{chat_id}/messages")
async def list_messages(chat_id: str, request: Request) -> dict[str, Any]:
    """List a chat's messages, oldest first."""
    user = require_user(request)
    offset, limit = parse_pagination(request)
    return _chat_manager().list_messages(chat_id, user, offset=offset, limit=limit)


@router.post("/api/chats/{chat_id}/messages", status_code=201)
async def send_message(chat_id: str, request: Request) -> JSONResponse:
    """Post a message to a chat."""
    user = require_user(request)
    data = await read_json_body(request)
    result = _chat_manager().send_message(chat_id, user, data)
    return JSONResponse(status_code=201, content=result)


@router.post("/api/chats/{chat_id}/read")
async def mark_read(chat_id: str, request: Request) -> dict[str, int]:
    """Mark the caller's incoming messages in a chat as read."""
    user = require_user(request)
    return _chat_manager().mark_read(chat_id, user)
