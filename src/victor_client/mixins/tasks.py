"""Task mixin: posting, search, lifecycle, and reviews."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from victor_client.api_manager import ApiManager


class _TaskClient(Protocol):
    api: ApiManager


def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class TaskMixin:
    """Task calls."""

    async def list_tasks(
        self: _TaskClient,
        status: str | None = None,
        category: str | None = None,
        user_id: str | None = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """List tasks, newest first."""
        params = _drop_none(
            {
                "status": status,
                "category": category,
                "user_id": user_id,
                "offset": offset,
                "limit": limit,
            }
        )
        result = await self.api.get("/api/tasks", params=params or None)
        return result["tasks"]

    async def search_tasks(
        self: _TaskClient,
        q: str | None = None,
        category: str | None = None,
        location: str | None = None,
        min_budget: float | None = None,
        max_budget: float | None = None,
        status: str | None = None,
        sort: str | None = None,
    ) -> dict[str, Any]:
        """Search tasks; returns ``{count, results}``."""
        params = _drop_none(
            {
                "q": q,
                "category": category,
                "location": location,
                "min_budget": min_budget,
                "max_budget": max_budget,
                "status": status,
                "sort": sort,
            }
        )
        return await self.api.get("/api/tasks/search", params=params or None)

    async def get_task(self: _TaskClient, task_id: str) -> dict[str, Any]:
        """Fetch one task."""
        return await self.api.get(f"/api/tasks/{task_id}")

    async def create_task(
        self: _TaskClient,
        title: str,
        description: str,
        **fields: Any,
    ) -> dict[str, Any]:
        """Post a task. Optional fields: category, location, budget, deadline, etc."""
        return await self.api.post(
            "/api/tasks",
            {"title": title, "description": description, **fields},
        )

    async def update_task(self: _TaskClient, task_id: str, **fields: Any) -> dict[str, Any]:
        """Edit an open task."""
        return await self.api.put(f"/api/tasks/{task_id}", fields)

    async def delete_task(self: _TaskClient, task_id: str) -> dict[str, Any]:
        """Delete an open or cancelled task."""
        return await self.api.delete(f"/api/tasks/{task_id}")

    async def my_tasks(self: _TaskClient) -> list[dict[str, Any]]:
        """Tasks the logged-in user posted."""
        result = await self.api.get("/api/my-tasks")
        return result["tasks"]

    async def accepted_tasks(self: _TaskClient) -> list[dict[str, Any]]:
        """Tasks the logged-in user is working on or has completed."""
        result = await self.api.get("/api/accepted-tasks")
        return result["tasks"]

    async def accept_task(self: _TaskClient, task_id: str) -> dict[str, Any]:
        """Take on an open task."""
        return await self.api.post(f"/api/tasks/{task_id}/accept")

    async def request_completion(self: _TaskClient, task_id: str) -> dict[str, Any]:
        """Ask the owner to verify finished work."""
        return await self.api.post(f"/api/tasks/{task_id}/request-completion")

    async def verify_completion(self: _TaskClient, task_id: str) -> dict[str, Any]:
        """Confirm finished work."""
        return await self.api.post(f"/api/tasks/{task_id}/verify-completion")

    async def complete_task(self: _TaskClient, task_id: str) -> dict[str, Any]:
        """Complete an in-progress task."""
        return await self.api.post(f"/api/tasks/{task_id}/complete")

    async def cancel_task(self: _TaskClient, task_id: str) -> dict[str, Any]:
        """Cancel an open or in-progress task."""
        return await self.api.post(f"/api/tasks/{task_id}/cancel")

    async def submit_review(
        self: _TaskClient,
        task_id: str,
        rating: int,
        comment: str | None = None,
    ) -> dict[str, Any]:
        """Review the other participant of a completed task."""
        return await self.api.post(
            f"/api/tasks/{task_id}/review",
            _drop_none({"rating": rating, "comment": comment}),
        )

    async def task_reviews(self: _TaskClient, task_id: str) -> list[dict[str, Any]]:
        """Reviews left on a task."""
        result = await self.api.get(f"/api/tasks/{task_id}/reviews")
        return result["reviews"]
