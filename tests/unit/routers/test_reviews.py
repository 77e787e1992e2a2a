"""Review endpoint tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests.unit.routers.conftest import completed_task, create_task

if TYPE_CHECKING:
    from httpx import AsyncClient


@pytest.mark.unit
class TestSubmitReview:
    """Tests for POST /api/tasks/{id}/review."""

    async def test_both_sides_review(self, client: AsyncClient, alice: dict, bob: dict) -> None:
        """Owner and worker each review the other."""
        task = await completed_task(client, alice, bob)
        task_id = task["task_id"]

        by_owner = await client.post(
            f"/api/tasks/{task_id}/review",
            json={"rating": 5, "comment": "Great job"},
            headers=alice["headers"],
        )
        assert by_owner.status_code == 201
        review = by_owner.json()
        assert review["review_id"].startswith("rev-")
        assert review["reviewer_id"] == alice["user_id"]
        assert review["reviewer_name"] == "Alice Owner"
        assert review["reviewee_id"] == bob["user_id"]
        assert review["comment"] == "Great job"

        by_worker = await client.post(
            f"/api/tasks/{task_id}/review",
            json={"rating": 3},
            headers=bob["headers"],
        )
        assert by_worker.status_code == 201
        assert by_worker.json()["reviewee_id"] == alice["user_id"]
        assert by_worker.json()["comment"] == ""

        listed = (await client.get(f"/api/tasks/{task_id}/reviews")).json()
        assert listed["task_id"] == task_id
        assert [r["reviewer_id"] for r in listed["reviews"]] == [alice["user_id"], bob["user_id"]]

    async def test_review_once(self, client: AsyncClient, alice: dict, bob: dict) -> None:
        """A participant reviews a task at most once."""
        task = await completed_task(client, alice, bob)
        path = f"/api/tasks/{task['task_id']}/review"
        await client.post(path, json={"rating": 4}, headers=alice["headers"])
        response = await client.post(path, json={"rating": 1}, headers=alice["headers"])
        assert response.status_code == 409
        assert response.json()["error"] == "REVIEW_ALREADY_EXISTS"

    @pytest.mark.parametrize("rating", [0, 6, 4.5, "5", None, True])
    async def test_invalid_rating(
        self,
        client: AsyncClient,
        alice: dict,
        bob: dict,
        rating: object,
    ) -> None:
        """Ratings are whole numbers from 1 to 5."""
        task = await completed_task(client, alice, bob)
        response = await client.post(
            f"/api/tasks/{task['task_id']}/review",
            json={"rating": rating},
            headers=alice["headers"],
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_RATING"

    async def test_comment_too_long(self, client: AsyncClient, alice: dict, bob: dict) -> None:
        """Comments are length limited."""
        task = await completed_task(client, alice, bob)
        response = await client.post(
            f"/api/tasks/{task['task_id']}/review",
            json={"rating": 4, "comment": "x" * 501},
            headers=alice["headers"],
        )
        assert response.status_code == 400
        assert response.json()["error"] == "COMMENT_TOO_LONG"

    async def test_stranger_cannot_review(
        self,
        client: AsyncClient,
        alice: dict,
        bob: dict,
        carol: dict,
    ) -> None:
        """Only the two participants review."""
        task = await completed_task(client, alice, bob)
        response = await client.post(
            f"/api/tasks/{task['task_id']}/review",
            json={"rating": 4},
            headers=carol["headers"],
        )
        assert response.status_code == 403

    async def test_unfinished_task(self, client: AsyncClient, alice: dict, bob: dict) -> None:
        """Tasks in progress cannot be reviewed yet."""
        task = await create_task(client, alice)
        await client.post(f"/api/tasks/{task['task_id']}/accept", headers=bob["headers"])
        response = await client.post(
            f"/api/tasks/{task['task_id']}/review",
            json={"rating": 4},
            headers=alice["headers"],
        )
        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_STATUS"

    async def test_missing_task(self, client: AsyncClient, alice: dict) -> None:
        """Unknown tasks are 404 for both submit and list."""
        response = await client.post(
            "/api/tasks/t-missing/review",
            json={"rating": 4},
            headers=alice["headers"],
        )
        assert response.status_code == 404
        listed = await client.get("/api/tasks/t-missing/reviews")
        assert listed.status_code == 404
