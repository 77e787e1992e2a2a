"""Offers made by users on open tasks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from victor_commons.exceptions import ServiceError
from victor_service.logging import get_logger
from victor_service.services.common import (
    DECLINED,
    IN_PROGRESS,
    OPEN,
    PENDING,
    WITHDRAWN,
    is_admin,
    is_positive_int,
    new_id,
    now_iso,
    optional_string,
)
from victor_service.services.task_store import DuplicateOfferError

if TYPE_CHECKING:
    from victor_service.services.notification_service import NotificationService
    from victor_service.services.task_store import TaskStore


class OfferManager:
    """
    Handles the offer flow on a task.

    A user may hold one pending offer per task. Accepting an offer hands
    the task to its author and declines every other pending offer.
    """

    def __init__(
        self,
        store: TaskStore,
        notifications: NotificationService,
        max_message_length: int,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._max_message_length = max_message_length
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _require_task(self, task_id: str) -> dict[str, Any]:
        task = self._store.get_task(task_id)
        if task is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {"task_id": task_id})
        return task

    def _require_offer(self, task_id: str, offer_id: str) -> dict[str, Any]:
        offer = self._store.get_offer(offer_id, task_id)
        if offer is None:
            raise ServiceError(
                "OFFER_NOT_FOUND",
                "Offer not found",
                404,
                {"offer_id": offer_id},
            )
        return offer

    @staticmethod
    def _require_task_owner(task: dict[str, Any], user: dict[str, Any]) -> None:
        if task["user_id"] != user["user_id"] and not is_admin(user):
            raise ServiceError("FORBIDDEN", "Only the task owner can manage offers", 403, {})

    @staticmethod
    def _require_pending(offer: dict[str, Any]) -> None:
        if offer["status"] != PENDING:
            raise ServiceError(
                "INVALID_OFFER_STATUS",
                f"Offer is {offer['status']}",
                409,
                {"status": offer["status"]},
            )

    def _set_status(self, offer: dict[str, Any], status: str) -> dict[str, Any]:
        changed = self._store.update_offer_status(
            offer["offer_id"],
            status,
            now_iso(),
            expected_status=PENDING,
        )
        current = self._require_offer(offer["task_id"], offer["offer_id"])
        if changed == 0:
            raise ServiceError(
                "INVALID_OFFER_STATUS",
                f"Offer is {current['status']}",
                409,
                {"status": current["status"]},
            )
        return current

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def submit_offer(
        self,
        task_id: str,
        user: dict[str, Any],
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Make an offer on someone else's open task."""
        task = self._require_task(task_id)

        amount = data.get("amount")
        if not is_positive_int(amount):
            raise ServiceError("INVALID_AMOUNT", "Amount must be a positive integer", 400, {})
        message = optional_string(data, "message") or ""
        if len(message) > self._max_message_length:
            raise ServiceError(
                "MESSAGE_TOO_LONG",
                f"Message must be at most {self._max_message_length} characters",
                400,
                {"max_length": self._max_message_length},
            )

        if task["user_id"] == user["user_id"]:
            raise ServiceError(
                "CANNOT_OFFER_OWN_TASK",
                "You cannot make an offer on your own task",
                400,
                {},
            )
        if task["status"] != OPEN:
            raise ServiceError(
                "INVALID_STATUS",
                f"Task is {task['status']}",
                409,
                {"status": task["status"]},
            )

        now = now_iso()
        offer = {
            "offer_id": new_id("off"),
            "task_id": task_id,
            "user_id": user["user_id"],
            "user_name": user["fullname"],
            "amount": amount,
            "message": message,
            "status": PENDING,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self._store.insert_offer(offer)
        except DuplicateOfferError as exc:
            raise ServiceError(
                "OFFER_ALREADY_EXISTS",
                "You already have a pending offer on this task",
                409,
                {},
            ) from exc

        self._notifications.notify(
            task["user_id"],
            "offer_received",
            f"{user['fullname']} offered {amount} on \"{task['title']}\"",
            sender_id=user["user_id"],
            task_id=task_id,
            offer_id=offer["offer_id"],
        )
        self._logger.info(
            "Offer submitted",
            extra={"task_id": task_id, "offer_id": offer["offer_id"], "amount": amount},
        )
        return offer

    def list_offers(self, task_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Owners see every offer on their task; other users see their own."""
        task = self._require_task(task_id)
        if task["user_id"] == user["user_id"] or is_admin(user):
            offers = self._store.list_offers(task_id)
        else:
            offers = self._store.list_offers(task_id, user_id=user["user_id"])
        return {"task_id": task_id, "offers": offers}

    def accept_offer(self, task_id: str, offer_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Accept an offer and assign the task to whoever made it."""
        task = self._require_task(task_id)
        self._require_task_owner(task, user)
        offer = self._require_offer(task_id, offer_id)
        self._require_pending(offer)
        if task["status"] != OPEN:
            raise ServiceError(
                "INVALID_STATUS",
                f"Task is {task['status']}",
                409,
                {"status": task["status"]},
            )

        now = now_iso()
        accepted = self._store.accept_offer(
            task_id,
            offer_id,
            {
                "status": IN_PROGRESS,
                "accepted_by_id": offer["user_id"],
                "accepted_by": offer["user_name"],
                "accepted_offer_id": offer_id,
                "accepted_at": now,
                "updated_at": now,
            },
        )
        if not accepted:
            raise ServiceError(
                "INVALID_STATUS",
                "Task or offer changed while accepting",
                409,
                {},
            )

        self._notifications.notify(
            offer["user_id"],
            "offer_accepted",
            f"Your offer on \"{task['title']}\" was accepted",
            sender_id=user["user_id"],
            task_id=task_id,
            offer_id=offer_id,
        )
        self._logger.info(
            "Offer accepted",
            extra={"task_id": task_id, "offer_id": offer_id, "worker_id": offer["user_id"]},
        )
        return {
            "task": self._require_task(task_id),
            "offer": self._require_offer(task_id, offer_id),
        }

    def decline_offer(self, task_id: str, offer_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Turn down a pending offer."""
        task = self._require_task(task_id)
        self._require_task_owner(task, user)
        offer = self._require_offer(task_id, offer_id)
        self._require_pending(offer)

        declined = self._set_status(offer, DECLINED)
        self._notifications.notify(
            offer["user_id"],
            "system",
            f"Your offer on \"{task['title']}\" was declined",
            sender_id=user["user_id"],
            task_id=task_id,
            offer_id=offer_id,
        )
        self._logger.info("Offer declined", extra={"task_id": task_id, "offer_id": offer_id})
        return declined

    def withdraw_offer(self, task_id: str, offer_id: str, user: dict[str, Any]) -> dict[str, Any]:
        """Withdraw one's own pending offer."""
        self._require_task(task_id)
        offer = self._require_offer(task_id, offer_id)
        if offer["user_id"] != user["user_id"]:
            raise ServiceError("FORBIDDEN", "Only the offer author can withdraw it", 403, {})
        self._require_pending(offer)

        withdrawn = self._set_status(offer, WITHDRAWN)
        self._logger.info("Offer withdrawn", extra={"task_id": task_id, "offer_id": offer_id})
        return withdrawn

