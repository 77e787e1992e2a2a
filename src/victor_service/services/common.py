"""Helpers shared by the service managers."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from victor_commons.exceptions import ServiceError

# Task statuses
OPEN = "Open"
IN_PROGRESS = "In Progress"
COMPLETED = "Completed"
CANCELLED = "Cancelled"
TASK_STATUSES: tuple[str, ...] = (OPEN, IN_PROGRESS, COMPLETED, CANCELLED)

# Offer statuses
PENDING = "Pending"
ACCEPTED = "Accepted"
DECLINED = "Declined"
WITHDRAWN = "Withdrawn"

ADMIN_ROLE = "admin"


def now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def new_id(prefix: str) -> str:
    """Generate a prefixed UUID4 identifier."""
    return f"{prefix}-{uuid.uuid4()}"


# Largest value an SQLite INTEGER column holds
MAX_SQLITE_INT = 2**63 - 1


def is_positive_int(value: object) -> bool:
    """Check if value is a positive integer (not float, not bool) that fits in SQLite."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_SQLITE_INT


def is_admin(user: dict[str, Any]) -> bool:
    """Check whether a user record carries the admin role."""
    return user.get("role") == ADMIN_ROLE


def require_string(
    data: dict[str, Any],
    field_name: str,
    *,
    error: str = "INVALID_PAYLOAD",
) -> str:
    """Extract a required, non-blank string field."""
    value = data.get(field_name)
    if not isinstance(value, str) or not value.strip():
        raise ServiceError(
            error,
            f"Field '{field_name}' is required and must be a non-empty string",
            400,
            {"field": field_name},
        )
    return value.strip()


def optional_string(data: dict[str, Any], field_name: str) -> str | None:
    """Extract an optional string field; null and absent both yield None."""
    value = data.get(field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ServiceError(
            "INVALID_PAYLOAD",
            f"Field '{field_name}' must be a string",
            400,
            {"field": field_name},
        )
    return value.strip()


def check_length(value: str, limit: int, error: str, label: str) -> None:
    """Raise error when value is longer than limit characters."""
    if len(value) > limit:
        raise ServiceError(
            error,
            f"{label} must be at most {limit} characters",
            400,
            {"max_length": limit},
        )
