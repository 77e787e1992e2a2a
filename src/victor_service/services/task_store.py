"""SQLite-backed task, offer, and review storage."""

from __future__ import annotations

import contextlib
import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any


class DuplicateOfferError(Exception):
    """Raised when a user already has a pending offer on the task."""


class DuplicateReviewError(Exception):
    """Raised when a user already reviewed the task."""


SORT_ORDERS: dict[str, str] = {
    "newest": "created_at DESC",
    "oldest": "created_at ASC",
    "budget_high": "COALESCE(budget, 0) DESC, created_at DESC",
    "budget_low": "COALESCE(budget, 0) ASC, created_at DESC",
}


class TaskStore:
    """SQLite-backed storage for tasks, offers, and reviews."""

    _TASK_COLUMNS: tuple[str, ...] = (
        "task_id",
        "user_id",
        "created_by",
        "title",
        "description",
        "category",
        "location",
        "specific_location",
        "contact_phone",
        "contact_email",
        "contact_method",
        "budget",
        "deadline",
        "urgent",
        "status",
        "accepted_by_id",
        "accepted_by",
        "accepted_offer_id",
        "accepted_at",
        "completion_requested_at",
        "completed_at",
        "cancelled_at",
        "offer_count",
        "created_at",
        "updated_at",
    )
    _OFFER_COLUMNS: tuple[str, ...] = (
        "offer_id",
        "task_id",
        "user_id",
        "user_name",
        "amount",
        "message",
        "status",
        "created_at",
        "updated_at",
    )
    _REVIEW_COLUMNS: tuple[str, ...] = (
        "review_id",
        "task_id",
        "reviewer_id",
        "reviewer_name",
        "reviewee_id",
        "rating",
        "comment",
        "created_at",
    )
    _CONTACT_COLUMNS: dict[str, str] = {
        "phone": "contact_phone",
        "email": "contact_email",
        "preferred_method": "contact_method",
    }

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA foreign_keys=ON")
        self._db.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._db.executescript(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    task_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    created_by TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'Other',
                    location TEXT NOT NULL DEFAULT 'Remote',
                    specific_location TEXT,
                    contact_phone TEXT,
                    contact_email TEXT,
                    contact_method TEXT NOT NULL DEFAULT 'platform',
                    budget INTEGER,
                    deadline TEXT,
                    urgent INTEGER NOT NULL DEFAULT 0,
                    status TEXT NOT NULL DEFAULT 'Open',
                    accepted_by_id TEXT,
                    accepted_by TEXT,
                    accepted_offer_id TEXT,
                    accepted_at TEXT,
                    completion_requested_at TEXT,
                    completed_at TEXT,
                    cancelled_at TEXT,
                    offer_count INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks (user_id);
                CREATE INDEX IF NOT EXISTS idx_tasks_accepted_by ON tasks (accepted_by_id);

                CREATE TABLE IF NOT EXISTS offers (
                    offer_id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL REFERENCES tasks (task_id) ON DELETE CASCADE,
                    user_id TEXT NOT NULL,
                    user_name TEXT NOT NULL,
                    amount INTEGER NOT NULL,
                    message TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'Pending',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_offers_pending
                    ON offers (task_id, user_id) WHERE status = 'Pending';

                CREATE TABLE IF NOT EXISTS reviews (
                    review_id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL REFERENCES tasks (task_id) ON DELETE CASCADE,
                    reviewer_id TEXT NOT NULL,
                    reviewer_name TEXT NOT NULL,
                    reviewee_id TEXT NOT NULL,
                    rating INTEGER NOT NULL,
                    comment TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    UNIQUE (task_id, reviewer_id)
                );

                CREATE INDEX IF NOT EXISTS idx_reviews_reviewee ON reviews (reviewee_id);
                """
            )
            self._db.commit()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _row_to_task(self, row: sqlite3.Row) -> dict[str, Any]:
        task = {column: row[column] for column in self._TASK_COLUMNS}
        task["urgent"] = bool(task["urgent"])
        task["contact_details"] = {
            "phone": task.pop("contact_phone"),
            "email": task.pop("contact_email"),
            "preferred_method": task.pop("contact_method"),
        }
        return task

    def _flatten_contact(self, data: dict[str, Any]) -> dict[str, Any]:
        flat = {key: value for key, value in data.items() if key != "contact_details"}
        contact = data.get("contact_details")
        if contact is not None:
            for key, column in self._CONTACT_COLUMNS.items():
                if key in contact:
                    flat[column] = contact[key]
        if "urgent" in flat:
            flat["urgent"] = int(bool(flat["urgent"]))
        return flat

    def _row_to_offer(self, row: sqlite3.Row) -> dict[str, Any]:
        return {column: row[column] for column in self._OFFER_COLUMNS}

    def _row_to_review(self, row: sqlite3.Row) -> dict[str, Any]:
        return {column: row[column] for column in self._REVIEW_COLUMNS}

    def _rollback(self) -> None:
        with contextlib.suppress(sqlite3.Error):
            self._db.execute("ROLLBACK")

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def insert_task(self, task_data: dict[str, Any]) -> None:
        """Insert a new task row."""
        flat = self._flatten_contact(task_data)
        values = tuple(flat.get(column) for column in self._TASK_COLUMNS)
        placeholders = ", ".join("?" for _ in self._TASK_COLUMNS)
        sql = f"INSERT INTO tasks ({', '.join(self._TASK_COLUMNS)}) VALUES ({placeholders})"

        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                self._db.execute(sql, values)
                self._db.commit()
            except Exception:
                self._rollback()
                raise

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        """Fetch a task by ID."""
        with self._lock:
            cursor = self._db.execute(
                f"SELECT {', '.join(self._TASK_COLUMNS)} FROM tasks WHERE task_id = ?",
                (task_id,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def update_task(
        self,
        task_id: str,
        updates: dict[str, Any],
        *,
        expected_status: str | None,
        decline_pending_offers: bool = False,
    ) -> int:
        """
        Update task columns and return the number of affected rows.

        With expected_status set, the row only changes while the task still
        holds that status, so a concurrent transition makes this return 0.
        With decline_pending_offers set, pending offers on the task are
        declined in the same transaction.
        """
        flat = self._flatten_contact(updates)
        if len(flat) == 0:
            return 0

        if any(column not in self._TASK_COLUMNS for column in flat):
            msg = "Attempted to update unknown task column"
            raise ValueError(msg)

        set_clause = ", ".join(f"{column} = ?" for column in flat)
        params: list[object] = list(flat.values())
        query = "UPDATE tasks SET " + set_clause + " WHERE task_id = ?"  # nosec B608
        params.append(task_id)
        if expected_status is not None:
            query += " AND status = ?"
            params.append(expected_status)

        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                cursor = self._db.execute(query, params)
                changed = int(cursor.rowcount)
                if changed > 0 and decline_pending_offers:
                    self._db.execute(
                        "UPDATE offers SET status = 'Declined', updated_at = ? "
                        "WHERE task_id = ? AND status = 'Pending'",
                        (flat.get("updated_at"), task_id),
                    )
                self._db.commit()
            except Exception:
                self._rollback()
                raise
        return changed

    def delete_task(self, task_id: str) -> int:
        """Delete a task together with its offers and reviews."""
        with self._lock:
            cursor = self._db.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))
            self._db.commit()
        return int(cursor.rowcount)

    def list_tasks(
        self,
        *,
        status: str | None = None,
        statuses: tuple[str, ...] | None = None,
        category: str | None = None,
        user_id: str | None = None,
        accepted_by_id: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """List tasks with optional filters, newest first."""
        query = f"SELECT {', '.join(self._TASK_COLUMNS)} FROM tasks"
        clauses: list[str] = []
        params: list[object] = []

        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if statuses is not None:
            clauses.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        if category is not None:
            clauses.append("lower(category) = lower(?)")
            params.append(category)
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if accepted_by_id is not None:
            clauses.append("accepted_by_id = ?")
            params.append(accepted_by_id)

        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)

        query += " ORDER BY created_at DESC"

        # SQLite requires LIMIT before OFFSET; -1 means no limit.
        if limit is not None or offset is not None:
            query += " LIMIT ?"
            params.append(limit if limit is not None else -1)
        if offset is not None:
            query += " OFFSET ?"
            params.append(offset)

        with self._lock:
            rows = self._db.execute(query, params).fetchall()
        return [self._row_to_task(row) for row in rows]

    def search_tasks(
        self,
        *,
        text: str | None,
        category: str | None,
        location: str | None,
        min_budget: float | None,
        max_budget: float | None,
        status: str | None,
        sort: str,
    ) -> list[dict[str, Any]]:
        """Search tasks by free text and filters."""
        if sort not in SORT_ORDERS:
            msg = f"Unknown sort order: {sort}"
            raise ValueError(msg)

        query = f"SELECT {', '.join(self._TASK_COLUMNS)} FROM tasks"
        clauses: list[str] = []
        params: list[object] = []

        if text:
            clauses.append(
                "(instr(lower(title), lower(?)) > 0 OR instr(lower(description), lower(?)) > 0)"
            )
            params.extend([text, text])
        if category:
            clauses.append("lower(category) = lower(?)")
            params.append(category)
        if location:
            clauses.append("instr(lower(location), lower(?)) > 0")
            params.append(location)
        if min_budget is not None:
            clauses.append("budget IS NOT NULL AND budget >= ?")
            params.append(min_budget)
        if max_budget is not None:
            clauses.append("budget IS NOT NULL AND budget <= ?")
            params.append(max_budget)
        if status:
            clauses.append("lower(status) = lower(?)")
            params.append(status)

        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY " + SORT_ORDERS[sort]

        with self._lock:
            rows = self._db.execute(query, params).fetchall()
        return [self._row_to_task(row) for row in rows]

    def count_tasks(self) -> int:
        """Count total tasks."""
        with self._lock:
            row = self._db.execute("SELECT COUNT(*) FROM tasks").fetchone()
        return int(row[0]) if row is not None else 0

    def count_tasks_by_status(self) -> dict[str, int]:
        """Count tasks grouped by status."""
        with self._lock:
            rows = self._db.execute("SELECT status, COUNT(*) FROM tasks GROUP BY status").fetchall()
        return {str(row[0]): int(row[1]) for row in rows}

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    def insert_offer(self, offer_data: dict[str, Any]) -> None:
        """Insert an offer and increment the task offer_count atomically."""
        values = tuple(offer_data[column] for column in self._OFFER_COLUMNS)
        placeholders = ", ".join("?" for _ in self._OFFER_COLUMNS)
        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                self._db.execute(
                    f"INSERT INTO offers ({', '.join(self._OFFER_COLUMNS)}) VALUES ({placeholders})",
                    values,
                )
                self._db.execute(
                    "UPDATE tasks SET offer_count = offer_count + 1 WHERE task_id = ?",
                    (offer_data["task_id"],),
                )
                self._db.commit()
            except sqlite3.IntegrityError as exc:
                self._rollback()
                if "unique" in str(exc).lower():
                    raise DuplicateOfferError("This user already has a pending offer") from exc
                raise
            except Exception:
                self._rollback()
                raise

    def get_offer(self, offer_id: str, task_id: str) -> dict[str, Any] | None:
        """Fetch an offer by offer_id and task_id."""
        with self._lock:
            cursor = self._db.execute(
                f"SELECT {', '.join(self._OFFER_COLUMNS)} FROM offers "
                "WHERE offer_id = ? AND task_id = ?",
                (offer_id, task_id),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_offer(row)

    def list_offers(self, task_id: str, *, user_id: str | None = None) -> list[dict[str, Any]]:
        """Fetch offers for a task, oldest first, optionally for one user."""
        query = f"SELECT {', '.join(self._OFFER_COLUMNS)} FROM offers WHERE task_id = ?"
        params: list[object] = [task_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        query += " ORDER BY created_at"
        with self._lock:
            rows = self._db.execute(query, params).fetchall()
        return [self._row_to_offer(row) for row in rows]

    def update_offer_status(
        self,
        offer_id: str,
        status: str,
        updated_at: str,
        *,
        expected_status: str,
    ) -> int:
        """Move an offer to a new status if it still holds expected_status."""
        with self._lock:
            cursor = self._db.execute(
                "UPDATE offers SET status = ?, updated_at = ? WHERE offer_id = ? AND status = ?",
                (status, updated_at, offer_id, expected_status),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def accept_offer(self, task_id: str, offer_id: str, task_updates: dict[str, Any]) -> bool:
        """
        Accept one offer and hand the task to its author.

        In a single transaction: the offer becomes Accepted, the task moves
        from Open with task_updates applied, and every other pending offer
        on the task becomes Declined.

        Returns:
            False if the offer was no longer pending or the task no longer open.
        """
        if any(column not in self._TASK_COLUMNS for column in task_updates):
            msg = "Attempted to update unknown task column"
            raise ValueError(msg)

        updated_at = task_updates["updated_at"]
        set_clause = ", ".join(f"{column} = ?" for column in task_updates)

        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                offer_cursor = self._db.execute(
                    "UPDATE offers SET status = 'Accepted', updated_at = ? "
                    "WHERE offer_id = ? AND task_id = ? AND status = 'Pending'",
                    (updated_at, offer_id, task_id),
                )
                if offer_cursor.rowcount == 0:
                    self._rollback()
                    return False
                task_cursor = self._db.execute(
                    "UPDATE tasks SET " + set_clause + " WHERE task_id = ? AND status = 'Open'",  # nosec B608
                    [*task_updates.values(), task_id],
                )
                if task_cursor.rowcount == 0:
                    self._rollback()
                    return False
                self._db.execute(
                    "UPDATE offers SET status = 'Declined', updated_at = ? "
                    "WHERE task_id = ? AND status = 'Pending'",
                    (updated_at, task_id),
                )
                self._db.commit()
            except Exception:
                self._rollback()
                raise
        return True

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def insert_review(self, review_data: dict[str, Any]) -> None:
        """Insert a review row."""
        values = tuple(review_data[column] for column in self._REVIEW_COLUMNS)
        placeholders = ", ".join("?" for _ in self._REVIEW_COLUMNS)
        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                self._db.execute(
                    f"INSERT INTO reviews ({', '.join(self._REVIEW_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    values,
                )
                self._db.commit()
            except sqlite3.IntegrityError as exc:
                self._rollback()
                if "unique" in str(exc).lower():
                    raise DuplicateReviewError("This user already reviewed the task") from exc
                raise
            except Exception:
                self._rollback()
                raise

    def list_reviews_for_task(self, task_id: str) -> list[dict[str, Any]]:
        """Fetch reviews for a task, oldest first."""
        with self._lock:
            rows = self._db.execute(
                f"SELECT {', '.join(self._REVIEW_COLUMNS)} FROM reviews "
                "WHERE task_id = ? ORDER BY created_at",
                (task_id,),
            ).fetchall()
        return [self._row_to_review(row) for row in rows]

    def list_reviews_for_user(self, reviewee_id: str) -> list[dict[str, Any]]:
        """Fetch reviews received by a user, newest first."""
        with self._lock:
            rows = self._db.execute(
                f"SELECT {', '.join(self._REVIEW_COLUMNS)} FROM reviews "
                "WHERE reviewee_id = ? ORDER BY created_at DESC",
                (reviewee_id,),
            ).fetchall()
        return [self._row_to_review(row) for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
