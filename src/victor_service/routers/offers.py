"""Offer endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from victor_service.core.state import get_app_state
from victor_service.routers.validation import read_json_body, require_user

if TYPE_CHECKING:
    from victor_service.services.offer_manager import OfferManager

router = APIRouter()


def _offer_manager() -> OfferManager:
    state = get_app_state()
    if state.offer_manager is None:
        msg = "OfferManager not initialized"
        raise RuntimeError(msg)
    return state.offer_manager


@router.post("/api/tasks/{task_id}/offers", status_code=201)
async def submit_offer(task_id: str, request: Request) -> JSONResponse:
    """Make an offer on an open task."""
    user = require_user(request)
    data = await read_json_body(request)
    result = _offer_manager().submit_offer(task_id, user, data)
    return JSONResponse(status_code=201, content=result)


@router.get("/api/tasks/{task_id}/offers")
async def list_offers(task_id: str, request: Request) -> dict[str, Any]:
    """List offers on a task visible to the caller."""
    user = require_user(request)
    return _offer_manager().list_offers(task_id, user)


@router.post("/api/tasks/{task_id}/offers/{offer_id}/accept")
async def accept_offer(task_id: str, offer_id: str, request: Request) -> dict[str, Any]:
    """Accept an offer and assign the task."""
    user = require_user(request)
    return _offer_manager().accept_offer(task_id, offer_id, user)


@router.post("/api/tasks/{task_id}/offers/{offer_id}/decline")
async def decline_offer(task_id: str, offer_id: str, request: Request) -> dict[str, Any]:
    """Decline a pending offer."""
    user = require_user(request)
    return _offer_manager().decline_offer(task_id, offer_id, user)


@router.post("/api/tasks/{task_id}/offers/{offer_id}/withdraw")
async def withdraw_offer(task_id: str, offer_id: str, request: Request) -> dict[str, Any]:
    """Withdraw the caller's own pending offer."""
    user = require_user(request)
    return _offer_manager().withdraw_offer(task_id, offer_id, user)
