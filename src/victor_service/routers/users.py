"""User profile endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request

from victor_service.core.state import get_app_state
from victor_service.routers.validation import read_json_body, require_user

if TYPE_CHECKING:
    from victor_service.services.user_manager import UserManager

router = APIRouter()


def _user_manager() -> UserManager:
    state = get_app_state()
    if state.user_manager is None:
        msg = "UserManager not initialized"
        raise RuntimeError(msg)
    return state.user_manager


# ---------------------------------------------------------------------------
# GET /api/users/me (MUST be before GET /api/users/{user_id})
# ---------------------------------------------------------------------------


@router.get("/api/users/me")
async def get_me(request: Request) -> dict[str, Any]:
    """Return the authenticated user's record."""
    user = require_user(request)
    return _user_manager().get_me(user)


@router.get("/api/users/{user_id}")
async def get_user(user_id: str, request: Request) -> dict[str, Any]:
    """Return a user's profile."""
    viewer = require_user(request)
    return _user_manager().get_profile(user_id, viewer)


@router.put("/api/users/{user_id}")
async def update_user(user_id: str, request: Request) -> dict[str, Any]:
    """Update profile fields of a user."""
    viewer = require_user(request)
    data = await read_json_body(request)
    return _user_manager().update_profile(user_id, viewer, data)


@router.get("/api/users/{user_id}/reviews")
async def get_user_reviews(user_id: str) -> dict[str, Any]:
    """Reviews a user has received, with the average rating."""
    return _user_manager().get_user_reviews(user_id)
