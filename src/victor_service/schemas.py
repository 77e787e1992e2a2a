"""Pydantic response models for the API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    total_users: int
    total_tasks: int
    tasks_by_status: dict[str, int]


class StatusResponse(BaseModel):
    """Response model for GET /api/status, the client reachability probe."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    message: str
    timestamp: str
    version: str

