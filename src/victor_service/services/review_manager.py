"""Reviews left by task participants once a task is completed."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from victor_commons.exceptions import ServiceError
from victor_service.logging import get_logger
from victor_service.services.common import COMPLETED, new_id, now_iso, optional_string
from victor_service.services.task_store import DuplicateReviewError

if TYPE_CHECKING:
    from victor_service.services.task_store import TaskStore


def _is_valid_rating(value: object) -> bool:
    """Check if value is an integer 1-5 (not float, not bool)."""
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 5


class ReviewManager:
    """Records reviews and computes per-user rating summaries."""

    def __init__(self, store: TaskStore, max_comment_length: int) -> None:
        self._store = store
        self._max_comment_length = max_comment_length
        self._logger = get_logger(__name__)

    def submit_review(
        self,
        task_id: str,
        reviewer: dict[str, Any],
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Review the other participant of a completed task.

        The task owner reviews the person who did the task and vice versa.
        Each participant can review a task once.
        """
        rating = data.get("rating")
        if not _is_valid_rating(rating):
            raise ServiceError(
                "INVALID_RATING",
                "Rating must be an integer between 1 and 5",
                400,
                {},
            )
        comment = optional_string(data, "comment") or ""
        if len(comment) > self._max_comment_length:
            raise ServiceError(
                "COMMENT_TOO_LONG",
                f"Comment must be at most {self._max_comment_length} characters",
                400,
                {"max_length": self._max_comment_length},
            )

        task = self._store.get_task(task_id)
        if task is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {"task_id": task_id})

        reviewer_id = reviewer["user_id"]
        if reviewer_id == task["user_id"]:
            reviewee_id = task["accepted_by_id"]
        elif reviewer_id == task["accepted_by_id"]:
            reviewee_id = task["user_id"]
        else:
            raise ServiceError(
                "FORBIDDEN",
                "Only task participants can leave a review",
                403,
                {},
            )

        if task["status"] != COMPLETED:
            raise ServiceError(
                "INVALID_STATUS",
                "Only completed tasks can be reviewed",
                409,
                {"status": task["status"]},
            )

        review = {
            "review_id": new_id("rev"),
            "task_id": task_id,
            "reviewer_id": reviewer_id,
            "reviewer_name": reviewer["fullname"],
            "reviewee_id": reviewee_id,
            "rating": rating,
            "comment": comment,
            "created_at": now_iso(),
        }
        try:
            self._store.insert_review(review)
        except DuplicateReviewError as exc:
            raise ServiceError(
                "REVIEW_ALREADY_EXISTS",
                "You have already reviewed this task",
                409,
                {},
            ) from exc

        self._logger.info(
            "Review submitted",
            extra={"task_id": task_id, "reviewer_id": reviewer_id, "rating": rating},
        )
        return review

    def list_task_reviews(self, task_id: str) -> dict[str, Any]:
        """List the reviews left on a task."""
        if self._store.get_task(task_id) is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {"task_id": task_id})
        return {"task_id": task_id, "reviews": self._store.list_reviews_for_task(task_id)}

    def list_user_reviews(self, user_id: str) -> list[dict[str, Any]]:
        """List reviews a user has received, newest first."""
        return self._store.list_reviews_for_user(user_id)

    def rating_summary(self, user_id: str) -> dict[str, Any]:
        """Average rating (2 decimals, None without reviews) and review count."""
        reviews = self._store.list_reviews_for_user(user_id)
        if not reviews:
            return {"average_rating": None, "review_count": 0}
        average = sum(review["rating"] for review in reviews) / len(reviews)
        return {"average_rating": round(average, 2), "review_count": len(reviews)}
