"""Review endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from victor_service.core.state import get_app_state
from victor_service.routers.validation import read_json_body, require_user

if TYPE_CHECKING:
    from victor_service.services.review_manager import ReviewManager

router = APIRouter()


def _review_manager() -> ReviewManager:
    state = get_app_state()
    if state.review_manager is None:
        msg = "ReviewManager not initialized"
        raise RuntimeError(msg)
    return state.review_manager


@router.post("/api/tasks/{task_id}/review", status_code=201)
async def submit_review(task_id: str, request: Request) -> JSONResponse:
    """Review the other participant of a completed task."""
    user = require_user(request)
    data = await read_json_body(request)
    result = _review_manager().submit_review(task_id, user, data)
    return JSONResponse(status_code=201, content=result)


@router.get("/api/tasks/{task_id}/reviews")
async def list_task_reviews(task_id: str) -> dict[str, Any]:
    """List reviews left on a task."""
    return _review_manager().list_task_reviews(task_id)
