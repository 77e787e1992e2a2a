"""Task posting, search, and lifecycle endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from victor_commons.exceptions import ServiceError
from victor_service.core.state import get_app_state
from victor_service.routers.validation import parse_pagination, read_json_body, require_user

if TYPE_CHECKING:
    from victor_service.services.task_manager import TaskManager

router = APIRouter()


def _task_manager() -> TaskManager:
    state = get_app_state()
    if state.task_manager is None:
        msg = "TaskManager not initialized"
        raise RuntimeError(msg)
    return state.task_manager


# ---------------------------------------------------------------------------
# POST /api/tasks: create task
# ---------------------------------------------------------------------------


@router.post("/api/tasks", status_code=201)
async def create_task(request: Request) -> JSONResponse:
    """Post a new task."""
    user = require_user(request)
    data = await read_json_body(request)
    result = _task_manager().create_task(user, data)
    return JSONResponse(status_code=201, content=result)


# ---------------------------------------------------------------------------
# GET /api/tasks: list tasks
# ---------------------------------------------------------------------------


@router.get("/api/tasks")
async def list_tasks(request: Request) -> dict[str, Any]:
    """List tasks with optional filters."""
    offset, limit = parse_pagination(request)
    tasks = _task_manager().list_tasks(
        status=request.query_params.get("status"),
        category=request.query_params.get("category"),
        user_id=request.query_params.get("user_id"),
        offset=offset,
        limit=limit,
    )
    return {"tasks": tasks}


# ---------------------------------------------------------------------------
# GET /api/tasks/search (MUST be before GET /api/tasks/{task_id})
# ---------------------------------------------------------------------------


@router.get("/api/tasks/search")
async def search_tasks(request: Request) -> dict[str, Any]:
    """Search tasks by text, category, location, budget, and status."""
    return _task_manager().search_tasks(dict(request.query_params))


# ---------------------------------------------------------------------------
# Current user's tasks
# ---------------------------------------------------------------------------


@router.get("/api/my-tasks")
async def my_tasks(request: Request) -> dict[str, Any]:
    """Tasks posted by the authenticated user."""
    user = require_user(request)
    return {"tasks": _task_manager().list_my_tasks(user)}


@router.get("/api/accepted-tasks")
async def accepted_tasks(request: Request) -> dict[str, Any]:
    """Tasks the authenticated user is working on or has completed."""
    user = require_user(request)
    return {"tasks": _task_manager().list_accepted_tasks(user)}


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/api/tasks/{task_id}")
async def get_task(task_id: str) -> dict[str, Any]:
    """Fetch a single task."""
    return _task_manager().get_task(task_id)


@router.put("/api/tasks/{task_id}")
async def update_task(task_id: str, request: Request) -> dict[str, Any]:
    """Edit an open task."""
    user = require_user(request)
    data = await read_json_body(request)
    if not data:
        raise ServiceError("INVALID_PAYLOAD", "No fields to update", 400, {})
    return _task_manager().update_task(task_id, user, data)


@router.delete("/api/tasks/{task_id}")
async def delete_task(task_id: str, request: Request) -> dict[str, Any]:
    """Delete an open or cancelled task."""
    user = require_user(request)
    return _task_manager().delete_task(task_id, user)


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------


@router.post("/api/tasks/{task_id}/accept")
async def accept_task(task_id: str, request: Request) -> dict[str, Any]:
    """Take on an open task."""
    user = require_user(request)
    return _task_manager().accept_task(task_id, user)


@router.post("/api/tasks/{task_id}/request-completion")
async def request_completion(task_id: str, request: Request) -> dict[str, Any]:
    """Ask the owner to verify finished work."""
    user = require_user(request)
    return _task_manager().request_completion(task_id, user)


@router.post("/api/tasks/{task_id}/verify-completion")
async def verify_completion(task_id: str, request: Request) -> dict[str, Any]:
    """Confirm finished work and complete the task."""
    user = require_user(request)
    return _task_manager().verify_completion(task_id, user)


@router.post("/api/tasks/{task_id}/complete")
async def complete_task(task_id: str, request: Request) -> dict[str, Any]:
    """Complete an in-progress task."""
    user = require_user(request)
    return _task_manager().complete_task(task_id, user)


@router.post("/api/tasks/{task_id}/cancel")
async def cancel_task(task_id: str, request: Request) -> dict[str, Any]:
    """Cancel an open or in-progress task."""
    user = require_user(request)
    return _task_manager().cancel_task(task_id, user)
