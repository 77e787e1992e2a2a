"""TaskStore tests: guarded updates, offers, acceptance, reviews."""

from __future__ import annotations

import pytest

from victor_service.services.task_store import (
    DuplicateOfferError,
    DuplicateReviewError,
    TaskStore,
)


def _task(task_id: str = "t-1", **overrides: object) -> dict:
    task = {
        "task_id": task_id,
        "user_id": "u-owner",
        "created_by": "Owner",
        "title": "Fix fence",
        "description": "Two panels",
        "category": "Garden",
        "location": "Leeds",
        "specific_location": None,
        "contact_details": {"phone": None, "email": "o@example.com", "preferred_method": "email"},
        "budget": 100,
        "deadline": None,
        "urgent": False,
        "status": "Open",
        "offer_count": 0,
        "created_at": "2026-01-01T00:00:00.000000Z",
        "updated_at": "2026-01-01T00:00:00.000000Z",
    }
    task.update(overrides)
    return task


def _offer(offer_id: str, user_id: str, task_id: str = "t-1", status: str = "Pending") -> dict:
    return {
        "offer_id": offer_id,
        "task_id": task_id,
        "user_id": user_id,
        "user_name": user_id,
        "amount": 50,
        "message": "",
        "status": status,
        "created_at": f"2026-01-01T00:00:0{offer_id[-1]}.000000Z",
        "updated_at": "2026-01-01T00:00:00.000000Z",
    }


def _review(review_id: str, reviewer_id: str, reviewee_id: str, rating: int) -> dict:
    return {
        "review_id": review_id,
        "task_id": "t-1",
        "reviewer_id": reviewer_id,
        "reviewer_name": reviewer_id,
        "reviewee_id": reviewee_id,
        "rating": rating,
        "comment": "",
        "created_at": "2026-01-02T00:00:00.000000Z",
    }


@pytest.fixture
def store(tmp_path):
    """A TaskStore on a temporary database holding one open task."""
    task_store = TaskStore(db_path=str(tmp_path / "tasks.db"))
    task_store.insert_task(_task())
    yield task_store
    task_store.close()


@pytest.mark.unit
class TestTasks:
    """Task rows."""

    def test_round_trip_nests_contact_details(self, store: TaskStore) -> None:
        """Contact columns come back as a nested object; urgent is a bool."""
        task = store.get_task("t-1")
        assert task is not None
        assert task["contact_details"] == {
            "phone": None,
            "email": "o@example.com",
            "preferred_method": "email",
        }
        assert task["urgent"] is False
        assert task["accepted_by_id"] is None

    def test_missing_task(self, store: TaskStore) -> None:
        """Unknown IDs give None."""
        assert store.get_task("t-missing") is None

    def test_guarded_update(self, store: TaskStore) -> None:
        """An update only applies while the expected status holds."""
        changed = store.update_task(
            "t-1",
            {"status": "In Progress", "updated_at": "2026-01-01T01:00:00.000000Z"},
            expected_status="Open",
        )
        assert changed == 1
        stale = store.update_task(
            "t-1",
            {"status": "Cancelled", "updated_at": "2026-01-01T02:00:00.000000Z"},
            expected_status="Open",
        )
        assert stale == 0
        task = store.get_task("t-1")
        assert task is not None
        assert task["status"] == "In Progress"

    def test_update_rejects_unknown_columns(self, store: TaskStore) -> None:
        """Only task columns can be written."""
        with pytest.raises(ValueError, match="unknown task column"):
            store.update_task("t-1", {"owner": "x"}, expected_status=None)

    def test_update_decline_pending_offers(self, store: TaskStore) -> None:
        """A transition can decline pending offers atomically."""
        store.insert_offer(_offer("off-1", "u-a"))
        store.update_task(
            "t-1",
            {"status": "Cancelled", "updated_at": "2026-01-01T03:00:00.000000Z"},
            expected_status="Open",
            decline_pending_offers=True,
        )
        offer = store.get_offer("off-1", "t-1")
        assert offer is not None
        assert offer["status"] == "Declined"

    def test_counts(self, store: TaskStore) -> None:
        """Totals and per-status counts."""
        store.insert_task(_task("t-2", status="Completed"))
        assert store.count_tasks() == 2
        assert store.count_tasks_by_status() == {"Open": 1, "Completed": 1}

    def test_delete_cascades(self, store: TaskStore) -> None:
        """Offers and reviews go with the task."""
        store.insert_offer(_offer("off-1", "u-a"))
        store.insert_review(_review("rev-1", "u-owner", "u-a", 5))
        assert store.delete_task("t-1") == 1
        assert store.list_offers("t-1") == []
        assert store.list_reviews_for_user("u-a") == []


@pytest.mark.unit
class TestOffers:
    """Offer rows and acceptance."""

    def test_insert_increments_offer_count(self, store: TaskStore) -> None:
        """Each offer bumps the task's offer_count."""
        store.insert_offer(_offer("off-1", "u-a"))
        store.insert_offer(_offer("off-2", "u-b"))
        task = store.get_task("t-1")
        assert task is not None
        assert task["offer_count"] == 2

    def test_one_pending_offer_per_user(self, store: TaskStore) -> None:
        """A duplicate pending offer is refused and not counted."""
        store.insert_offer(_offer("off-1", "u-a"))
        with pytest.raises(DuplicateOfferError):
            store.insert_offer(_offer("off-2", "u-a"))
        task = store.get_offer("off-2", "t-1")
        assert task is None
        assert store.get_task("t-1")["offer_count"] == 1

    def test_non_pending_offers_do_not_block(self, store: TaskStore) -> None:
        """Withdrawn offers free the pending slot."""
        store.insert_offer(_offer("off-1", "u-a", status="Withdrawn"))
        store.insert_offer(_offer("off-2", "u-a"))
        assert len(store.list_offers("t-1", user_id="u-a")) == 2

    def test_update_offer_status_guard(self, store: TaskStore) -> None:
        """Offer status changes are guarded on the current status."""
        store.insert_offer(_offer("off-1", "u-a"))
        assert store.update_offer_status("off-1", "Declined", "now", expected_status="Pending") == 1
        assert store.update_offer_status("off-1", "Accepted", "now", expected_status="Pending") == 0

    def test_accept_offer(self, store: TaskStore) -> None:
        """Acceptance assigns the task and declines the other pending offers."""
        store.insert_offer(_offer("off-1", "u-a"))
        store.insert_offer(_offer("off-2", "u-b"))
        accepted = store.accept_offer(
            "t-1",
            "off-1",
            {
                "status": "In Progress",
                "accepted_by_id": "u-a",
                "accepted_by": "u-a",
                "accepted_offer_id": "off-1",
                "updated_at": "2026-01-01T05:00:00.000000Z",
            },
        )
        assert accepted is True
        task = store.get_task("t-1")
        assert task is not None
        assert task["status"] == "In Progress"
        assert task["accepted_offer_id"] == "off-1"
        assert [o["status"] for o in store.list_offers("t-1")] == ["Accepted", "Declined"]

    def test_accept_offer_on_closed_task_rolls_back(self, store: TaskStore) -> None:
        """If the task is no longer open nothing changes."""
        store.insert_offer(_offer("off-1", "u-a"))
        store.update_task(
            "t-1",
            {"status": "Cancelled", "updated_at": "x"},
            expected_status="Open",
        )
        accepted = store.accept_offer(
            "t-1",
            "off-1",
            {"status": "In Progress", "accepted_by_id": "u-a", "updated_at": "y"},
        )
        assert accepted is False
        offer = store.get_offer("off-1", "t-1")
        assert offer is not None
        assert offer["status"] == "Pending"


@pytest.mark.unit
class TestReviews:
    """Review rows."""

    def test_one_review_per_reviewer(self, store: TaskStore) -> None:
        """Each participant reviews a task once."""
        store.insert_review(_review("rev-1", "u-owner", "u-a", 5))
        with pytest.raises(DuplicateReviewError):
            store.insert_review(_review("rev-2", "u-owner", "u-a", 1))
        store.insert_review(_review("rev-3", "u-a", "u-owner", 4))
        assert len(store.list_reviews_for_task("t-1")) == 2
        assert [r["rating"] for r in store.list_reviews_for_user("u-a")] == [5]


@pytest.mark.unit
class TestSearch:
    """Search filters and sort orders."""

    def test_unknown_sort(self, store: TaskStore) -> None:
        """Only known sort orders are accepted."""
        with pytest.raises(ValueError, match="Unknown sort order"):
            store.search_tasks(
                text=None,
                category=None,
                location=None,
                min_budget=None,
                max_budget=None,
                status=None,
                sort="random",
            )

    def test_status_is_case_insensitive(self, store: TaskStore) -> None:
        """Status filters ignore case."""
        results = store.search_tasks(
            text="FENCE",
            category="garden",
            location="lee",
            min_budget=100,
            max_budget=100,
            status="open",
            sort="newest",
        )
        assert [t["task_id"] for t in results] == ["t-1"]
