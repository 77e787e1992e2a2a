"""Request parsing helpers shared by the API routers."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from victor_commons.exceptions import ServiceError
from victor_service.core.state import get_app_state
from victor_service.services.common import MAX_SQLITE_INT

if TYPE_CHECKING:
    from fastapi import Request

BEARER_PREFIX = "Bearer "


def _invalid_json(message: str) -> ServiceError:
    return ServiceError("INVALID_JSON", message, 400)


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Decode a request body that must be a JSON object."""
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise _invalid_json("Request body is not valid JSON") from exc
    if not isinstance(data, dict):
        raise _invalid_json("Request body must be a JSON object")
    return data


async def read_json_body(request: Request) -> dict[str, Any]:
    """Read and parse the request body; an empty body parses as {}."""
    body = await request.body()
    if not body.strip():
        return {}
    return parse_json_body(body)


def extract_bearer_token(authorization: str | None) -> str:
    """
    Return the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        ServiceError: AUTH_REQUIRED (401) when the header is missing,
            uses another scheme, or carries no token.
    """
    if authorization is None:
        problem = "Missing Authorization header"
    elif not authorization.startswith(BEARER_PREFIX):
        problem = "Authorization header must use Bearer scheme"
    else:
        token = authorization.removeprefix(BEARER_PREFIX).strip()
        if token:
            return token
        problem = "Bearer token must not be empty"
    raise ServiceError("AUTH_REQUIRED", problem, 401)


def require_user(request: Request) -> dict[str, Any]:
    """Resolve the authenticated user for a request."""
    token = extract_bearer_token(request.headers.get("authorization"))
    user_manager = get_app_state().user_manager
    if user_manager is None:
        msg = "UserManager not initialized"
        raise RuntimeError(msg)
    return user_manager.authenticate(token)


def query_int(request: Request, name: str, minimum: int) -> int | None:
    """Optional integer query parameter between ``minimum`` and the SQLite integer limit."""
    raw = request.query_params.get(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ServiceError("INVALID_QUERY", f"{name} must be an integer", 400) from exc
    if value < minimum:
        raise ServiceError("INVALID_QUERY", f"{name} must be >= {minimum}", 400)
    if value > MAX_SQLITE_INT:
        raise ServiceError("INVALID_QUERY", f"{name} must be <= {MAX_SQLITE_INT}", 400)
    return value


def parse_pagination(request: Request) -> tuple[int | None, int | None]:
    """Parse optional ``offset`` and ``limit`` query parameters."""
    return query_int(request, "offset", 0), query_int(request, "limit", 1)
