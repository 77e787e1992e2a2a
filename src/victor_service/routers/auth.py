"""Signup and login endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from victor_service.core.state import get_app_state
from victor_service.routers.validation import read_json_body

router = APIRouter()


@router.post("/api/signup", status_code=201)
async def signup(request: Request) -> JSONResponse:
    """Register an account and return a session token."""
    data = await read_json_body(request)

    state = get_app_state()
    if state.user_manager is None:
        msg = "UserManager not initialized"
        raise RuntimeError(msg)

    result = state.user_manager.signup(data)
    return JSONResponse(status_code=201, content=result)


@router.post("/api/login")
async def login(request: Request) -> JSONResponse:
    """Exchange email and password for a session token."""
    data = await read_json_body(request)

    state = get_app_state()
    if state.user_manager is None:
        msg = "UserManager not initialized"
        raise RuntimeError(msg)

    result = state.user_manager.login(data)
    return JSONResponse(status_code=200, content=result)
