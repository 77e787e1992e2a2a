"""Health and reachability endpoints."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter

from victor_service.config import get_settings
from victor_service.core.state import get_app_state
from victor_service.schemas import HealthResponse, StatusResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health and return statistics."""
    state = get_app_state()
    total_users = 0
    total_tasks = 0
    tasks_by_status: dict[str, int] = {}
    if state.user_manager is not None:
        total_users = state.user_manager.count_users()
    if state.task_manager is not None:
        stats = state.task_manager.get_stats()
        total_tasks = stats["total_tasks"]
        tasks_by_status = stats["tasks_by_status"]
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        total_users=total_users,
        total_tasks=total_tasks,
        tasks_by_status=tasks_by_status,
    )


@router.get("/api/status", response_model=StatusResponse)
async def api_status() -> StatusResponse:
    """Lightweight probe used by clients to find a reachable server."""
    return StatusResponse(
        status="ok",
        message="Server is running",
        timestamp=datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z"),
        version=get_settings().service.version,
    )
