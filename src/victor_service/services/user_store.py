"""SQLite-backed user storage."""

from __future__ import annotations

import contextlib
import json
import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any


class DuplicateEmailError(Exception):
    """Raised when attempting to register an email that already exists."""


class UserStore:
    """SQLite-backed storage for user accounts."""

    _USER_COLUMNS: tuple[str, ...] = (
        "user_id",
        "fullname",
        "email",
        "password_hash",
        "role",
        "phone",
        "bio",
        "location",
        "skills",
        "profile_pic",
        "created_at",
        "updated_at",
    )
    _UPDATABLE_COLUMNS: frozenset[str] = frozenset(
        {
            "fullname",
            "phone",
            "bio",
            "location",
            "skills",
            "profile_pic",
            "password_hash",
            "updated_at",
        }
    )

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
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    fullname TEXT NOT NULL,
                    email TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'user',
                    phone TEXT,
                    bio TEXT,
                    location TEXT,
                    skills TEXT NOT NULL DEFAULT '[]',
                    profile_pic TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email
                    ON users (lower(email));
                """
            )
            self._db.commit()

    def _row_to_user(self, row: sqlite3.Row) -> dict[str, Any]:
        user = {column: row[column] for column in self._USER_COLUMNS}
        user["skills"] = json.loads(user["skills"]) if user["skills"] else []
        return user

    def insert_user(self, user_data: dict[str, Any]) -> None:
        """Insert a new user row."""
        values = []
        for column in self._USER_COLUMNS:
            value = user_data.get(column)
            if column == "skills":
                value = json.dumps(value or [])
            values.append(value)

        placeholders = ", ".join("?" for _ in self._USER_COLUMNS)
        sql = f"INSERT INTO users ({', '.join(self._USER_COLUMNS)}) VALUES ({placeholders})"

        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                self._db.execute(sql, tuple(values))
                self._db.commit()
            except sqlite3.IntegrityError as exc:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                if "unique" in str(exc).lower():
                    raise DuplicateEmailError(
                        f"A user with email={user_data['email']} already exists"
                    ) from exc
                raise
            except Exception:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Fetch a user by ID."""
        with self._lock:
            cursor = self._db.execute(
                f"SELECT {', '.join(self._USER_COLUMNS)} FROM users WHERE user_id = ?",
                (user_id,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        """Fetch a user by email, ignoring case."""
        with self._lock:
            cursor = self._db.execute(
                f"SELECT {', '.join(self._USER_COLUMNS)} FROM users WHERE lower(email) = lower(?)",
                (email,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def update_user(self, user_id: str, updates: dict[str, Any]) -> int:
        """Update profile columns and return the number of affected rows."""
        if len(updates) == 0:
            return 0

        if any(column not in self._UPDATABLE_COLUMNS for column in updates):
            msg = "Attempted to update a protected user column"
            raise ValueError(msg)

        params: list[object] = [
            json.dumps(value) if column == "skills" else value for column, value in updates.items()
        ]
        set_clause = ", ".join(f"{column} = ?" for column in updates)
        params.append(user_id)

        with self._lock:
            cursor = self._db.execute(
                f"UPDATE users SET {set_clause} WHERE user_id = ?",  # nosec B608
                tuple(params),
            )
            self._db.commit()
        return cursor.rowcount

    def count_users(self) -> int:
        """Count registered users."""
        with self._lock:
            row = self._db.execute("SELECT COUNT(*) AS count FROM users").fetchone()
        return int(row["count"])

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
