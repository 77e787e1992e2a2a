"""Notification endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request

from victor_service.core.state import get_app_state
from victor_service.routers.validation import parse_pagination, require_user

if TYPE_CHECKING:
    from victor_service.services.notification_service import NotificationService

router = APIRouter()


def _notification_service() -> NotificationService:
    state = get_app_state()
    if state.notification_service is None:
        msg = "NotificationService not initialized"
        raise RuntimeError(msg)
    return state.notification_service


@router.get("/api/notifications")
async def list_notifications(request: Request) -> dict[str, Any]:
    """List the caller's notifications, newest first."""
    user = require_user(request)
    _, limit = parse_pagination(request)
    unread_only = request.query_params.get("unread_only", "").lower() in ("1", "true", "yes")
    return _notification_service().list_notifications(
        user["user_id"],
        unread_only=unread_only,
        limit=limit,
    )


@router.post("/api/notifications/mark-all-read")
async def mark_all_read(request: Request) -> dict[str, int]:
    """Mark every notification of the caller as read."""
    user = require_user(request)
    return _notification_service().mark_all_read(user["user_id"])


@router.post("/api/notifications/{notification_id}/read")
async def mark_read(notification_id: str, request: Request) -> dict[str, Any]:
    """Mark one notification as read."""
    user = require_user(request)
    return _notification_service().mark_read(notification_id, user["user_id"])
