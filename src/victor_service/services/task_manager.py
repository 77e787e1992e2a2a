"""Task posting, search, and lifecycle transitions."""

from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING, Any, cast

from victor_commons.exceptions import ServiceError
from victor_service.logging import get_logger
from victor_service.services.common import (
    CANCELLED,
    COMPLETED,
    IN_PROGRESS,
    OPEN,
    TASK_STATUSES,
    check_length,
    is_admin,
    is_positive_int,
    new_id,
    now_iso,
    optional_string,
    require_string,
)
from victor_service.services.task_store import SORT_ORDERS

if TYPE_CHECKING:
    from victor_service.services.notification_service import NotificationService
    from victor_service.services.task_store import TaskStore

_CONTACT_METHODS: frozenset[str] = frozenset({"phone", "email", "platform"})

_EDITABLE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "category",
        "location",
        "specific_location",
        "contact_details",
        "budget",
        "deadline",
        "urgent",
    }
)


def _parse_budget(value: object) -> int | None:
    """Accept a positive integer or a string of digits; None clears the budget."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not is_positive_int(value):
        raise ServiceError(
            "INVALID_BUDGET",
            "Budget must be a positive integer",
            400,
            {},
        )
    return cast("int", value)


def _parse_deadline(value: object) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            pass
        else:
            return value
    raise ServiceError(
        "INVALID_DEADLINE",
        "Deadline must be an ISO 8601 date or datetime",
        400,
        {},
    )


def _parse_contact_details(value: object) -> dict[str, Any]:
    if value is None:
        return {"phone": None, "email": None, "preferred_method": "platform"}
    if not isinstance(value, dict):
        raise ServiceError(
            "INVALID_PAYLOAD",
            "Field 'contact_details' must be an object",
            400,
            {"field": "contact_details"},
        )
    phone = optional_string(value, "phone") or None
    email = optional_string(value, "email") or None
    method = value.get("preferred_method", "platform")
    if method not in _CONTACT_METHODS:
        raise ServiceError(
            "INVALID_PAYLOAD",
            "preferred_method must be one of phone, email, platform",
            400,
            {"field": "contact_details.preferred_method"},
        )
    return {"phone": phone, "email": email, "preferred_method": method}


def _parse_urgent(value: object) -> bool:
    if not isinstance(value, bool):
        raise ServiceError(
            "INVALID_PAYLOAD",
            "Field 'urgent' must be a boolean",
            400,
            {"field": "urgent"},
        )
    return value


def _parse_number(params: dict[str, str], *names: str) -> float | None:
    for name in names:
        raw = params.get(name)
        if raw is None or raw == "":
            continue
        try:
            value = float(raw)
        except ValueError:
            value = math.nan
        if not math.isfinite(value):
            raise ServiceError(
                "INVALID_QUERY",
                f"{name} must be a number",
                400,
                {"param": name},
            )
        return value
    return None


class TaskManager:
    """
    Manages the task lifecycle: posting, editing, acceptance,
    completion, and cancellation.

    Status moves Open -> In Progress -> Completed, with Cancelled
    reachable from Open and In Progress. Every transition is applied
    with an expected-status guard so a concurrent change loses cleanly.
    """

    def __init__(
        self,
        store: TaskStore,
        notifications: NotificationService,
        max_title_length: int,
        max_description_length: int,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._max_title_length = max_title_length
        self._max_description_length = max_description_length
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _require_task(self, task_id: str) -> dict[str, Any]:
        task = self._store.get_task(task_id)
        if task is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {"task_id": task_id})
        return task

    @staticmethod
    def _require_status(task: dict[str, Any], *allowed: str) -> None:
        if task["status"] not in allowed:
            raise ServiceError(
                "INVALID_STATUS",
                f"Task is {task['status']}",
                409,
                {"status": task["status"], "allowed": list(allowed)},
            )

    @staticmethod
    def _require_owner(task: dict[str, Any], user: dict[str, Any], action: str) -> None:
        if task["user_id"] != user["user_id"] and not is_admin(user):
            raise ServiceError(
                "FORBIDDEN",
                f"Only the task owner can {action}",
                403,
                {},
            )

    def _transition(
        self,
        task: dict[str, Any],
        updates: dict[str, Any],
        *,
        decline_pending_offers: bool = False,
    ) -> dict[str, Any]:
        """Apply updates if the task still holds the status it was read with."""
        updates["updated_at"] = now_iso()
        changed = self._store.update_task(
            task["task_id"],
            updates,
            expected_status=task["status"],
            decline_pending_offers=decline_pending_offers,
        )
        if changed == 0:
            current = self._require_task(task["task_id"])
            raise ServiceError(
                "INVALID_STATUS",
                f"Task is {current['status']}",
                409,
                {"status": current["status"]},
            )
        return self._require_task(task["task_id"])

    def _validate_title(self, data: dict[str, Any]) -> str:
        title = require_string(data, "title")
        check_length(title, self._max_title_length, "TITLE_TOO_LONG", "Title")
        return title

    def _validate_description(self, data: dict[str, Any]) -> str:
        description = require_string(data, "description")
        check_length(
            description, self._max_description_length, "DESCRIPTION_TOO_LONG", "Description"
        )
        return description

    # ------------------------------------------------------------------
    # Posting and editing
    # ------------------------------------------------------------------

    def create_task(self, user: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        """Post a new open task."""
        now = now_iso()
        task = {
            "task_id": new_id("t"),
            "user_id": user["user_id"],
            "created_by": user["fullname"],
            "title": self._validate_title(data),
            "description": self._validate_description(data),
            "category": optional_string(data, "category") or "Other",
            "location": optional_string(data, "location") or "Remote",
            "specific_location": optional_string(data, "specific_location") or None,
            "contact_details": _parse_contact_details(data.get("contact_details")),
            "budget": _parse_budget(data.get("budget")),
            "deadline": _parse_deadline(data.get("deadline")),
            "urgent": _parse_urgent(data.get("urgent", False)),
            "status": OPEN,
            "offer_count": 0,
            "created_at": now,
            "updated_at": now,
        }
        self._store.insert_task(task)
        self._logger.info(
            "Task created",
            extra={"task_id": task["task_id"], "user_id": user["user_id"]},
        )
        return self._require_task(task["task_id"])

    def update_task(
        self,
        task_id: str,
        user: dict[str, Any],
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Edit an open task. Status changes go through the lifecycle actions."""
        unknown = sorted(set(data) - _EDITABLE_FIELDS)
        if unknown:
            raise ServiceError(
                "INVALID_PAYLOAD",
                "These fields cannot be updated",
                400,
                {"fields": unknown},
            )

        task = self._require_task(task_id)
        self._require_owner(task, user, "edit this task")
        self._require_status(task, OPEN)

        updates: dict[str, Any] = {}
        if "title" in data:
            updates["title"] = self._validate_title(data)
        if "description" in data:
            updates["description"] = self._validate_description(data)
        if "category" in data:
            updates["category"] = optional_string(data, "category") or "Other"
        if "location" in data:
            updates["location"] = optional_string(data, "location") or "Remote"
        if "specific_location" in data:
            updates["specific_location"] = optional_string(data, "specific_location") or None
        if "contact_details" in data:
            updates["contact_details"] = _parse_contact_details(data["contact_details"])
        if "budget" in data:
            updates["budget"] = _parse_budget(data["budget"])
        if "deadline" in data:
            updates["deadline"] = _parse_deadline(data["deadline"])
        if "urgent" in data:
            updates["urgent"] = _parse_urgent(data["urgent"])

        if not updates:
            return task
        return self._transition(task, updates)

    def delete_task(self, task_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Delete an open or cancelled task along with its offers and reviews."""
        task = self._require_task(task_id)
        self._require_owner(task, user, "delete this task")
        self._require_status(task, OPEN, CANCELLED)
        self._store.delete_task(task_id)
        self._logger.info("Task deleted", extra={"task_id": task_id, "user_id": user["user_id"]})
        return {"message": "Task deleted", "task_id": task_id}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> dict[str, Any]:
        """Fetch a single task."""
        return self._require_task(task_id)

    def list_tasks(
        self,
        *,
        status: str | None,
        category: str | None,
        user_id: str | None,
        offset: int | None,
        limit: int | None,
    ) -> list[dict[str, Any]]:
        """List tasks, newest first."""
        return self._store.list_tasks(
            status=status,
            category=category,
            user_id=user_id,
            offset=offset,
            limit=limit,
        )

    def list_my_tasks(self, user: dict[str, Any]) -> list[dict[str, Any]]:
        """Tasks the user has posted."""
        return self._store.list_tasks(user_id=user["user_id"])

    def list_accepted_tasks(self, user: dict[str, Any]) -> list[dict[str, Any]]:
        """Tasks the user has taken on that are in progress or completed."""
        return self._store.list_tasks(
            accepted_by_id=user["user_id"],
            statuses=(IN_PROGRESS, COMPLETED),
        )

    def search_tasks(self, params: dict[str, str]) -> dict[str, Any]:
        """
        Search tasks by free text and filters.

        Query keys: ``q``, ``category``, ``location``, ``min_budget``,
        ``max_budget``, ``status`` and ``sort``. The camelCase
        ``minBudget``/``maxBudget`` spellings are accepted as well.
        """
        sort = params.get("sort") or "newest"
        if sort not in SORT_ORDERS:
            raise ServiceError(
                "INVALID_QUERY",
                f"sort must be one of {', '.join(SORT_ORDERS)}",
                400,
                {"param": "sort"},
            )
        results = self._store.search_tasks(
            text=params.get("q") or None,
            category=params.get("category") or None,
            location=params.get("location") or None,
            min_budget=_parse_number(params, "min_budget", "minBudget"),
            max_budget=_parse_number(params, "max_budget", "maxBudget"),
            status=params.get("status") or None,
            sort=sort,
        )
        return {"count": len(results), "results": results}

    def get_stats(self) -> dict[str, Any]:
        """Task counts for the health endpoint."""
        counts = self._store.count_tasks_by_status()
        return {
            "total_tasks": self._store.count_tasks(),
            "tasks_by_status": {status: counts.get(status, 0) for status in TASK_STATUSES},
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def accept_task(self, task_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Take on an open task directly, declining any pending offers."""
        task = self._require_task(task_id)
        self._require_status(task, OPEN)
        if task["user_id"] == user["user_id"]:
            raise ServiceError(
                "CANNOT_ACCEPT_OWN_TASK",
                "You cannot accept your own task",
                400,
                {},
            )

        updated = self._transition(
            task,
            {
                "status": IN_PROGRESS,
                "accepted_by_id": user["user_id"],
                "accepted_by": user["fullname"],
                "accepted_at": now_iso(),
            },
            decline_pending_offers=True,
        )
        self._notifications.notify(
            task["user_id"],
            "offer_accepted",
            f"{user['fullname']} accepted your task \"{task['title']}\"",
            sender_id=user["user_id"],
            task_id=task_id,
        )
        self._logger.info("Task accepted", extra={"task_id": task_id, "user_id": user["user_id"]})
        return updated

    def request_completion(self, task_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Mark work as done and ask the owner to verify it."""
        task = self._require_task(task_id)
        if task["accepted_by_id"] != user["user_id"]:
            raise ServiceError(
                "FORBIDDEN",
                "Only the user working on this task can request completion",
                403,
                {},
            )
        self._require_status(task, IN_PROGRESS)

        updated = self._transition(task, {"completion_requested_at": now_iso()})
        self._notifications.notify(
            task["user_id"],
            "task_completed",
            f"{user['fullname']} marked \"{task['title']}\" as done. Please verify it.",
            sender_id=user["user_id"],
            task_id=task_id,
        )
        self._logger.info("Completion requested", extra={"task_id": task_id})
        return updated

    def verify_completion(self, task_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Owner confirms the work and closes the task as completed."""
        task = self._require_task(task_id)
        self._require_owner(task, user, "verify completion")
        self._require_status(task, IN_PROGRESS)

        updated = self._transition(task, {"status": COMPLETED, "completed_at": now_iso()})
        self._notifications.notify(
            task["accepted_by_id"],
            "task_completed",
            f"\"{task['title']}\" was verified as completed",
            sender_id=user["user_id"],
            task_id=task_id,
        )
        self._logger.info("Task completed", extra={"task_id": task_id, "verified": True})
        return updated

    def complete_task(self, task_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Close an in-progress task as completed; owner or worker may do this."""
        task = self._require_task(task_id)
        participants = {task["user_id"], task["accepted_by_id"]}
        if user["user_id"] not in participants and not is_admin(user):
            raise ServiceError(
                "FORBIDDEN",
                "Only the task owner or the assigned user can complete this task",
                403,
                {},
            )
        self._require_status(task, IN_PROGRESS)

        updated = self._transition(task, {"status": COMPLETED, "completed_at": now_iso()})
        for recipient_id in sorted(participants - {user["user_id"], None}):
            self._notifications.notify(
                recipient_id,
                "task_completed",
                f"\"{task['title']}\" was marked as completed",
                sender_id=user["user_id"],
                task_id=task_id,
            )
        self._logger.info("Task completed", extra={"task_id": task_id, "verified": False})
        return updated

    def cancel_task(self, task_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Cancel an open or in-progress task and decline its pending offers."""
        task = self._require_task(task_id)
        self._require_owner(task, user, "cancel this task")
        self._require_status(task, OPEN, IN_PROGRESS)

        updated = self._transition(
            task,
            {"status": CANCELLED, "cancelled_at": now_iso()},
            decline_pending_offers=True,
        )
        if task["accepted_by_id"] is not None:
            self._notifications.notify(
                task["accepted_by_id"],
                "system",
                f"\"{task['title']}\" was cancelled by its owner",
                sender_id=user["user_id"],
                task_id=task_id,
            )
        self._logger.info("Task cancelled", extra={"task_id": task_id})
        return updated

    def close(self) -> None:
        """Close the underlying store."""
        self._store.close()
