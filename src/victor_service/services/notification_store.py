"""SQLite-backed notification storage."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any


class NotificationStore:
    """SQLite-backed storage for user notifications."""

    _COLUMNS: tuple[str, ...] = (
        "notification_id",
        "recipient_id",
        "sender_id",
        "type",
        "message",
        "task_id",
        "offer_id",
        "chat_id",
        "read",
        "created_at",
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
                CREATE TABLE IF NOT EXISTS notifications (
                    notification_id TEXT PRIMARY KEY,
                    recipient_id TEXT NOT NULL,
                    sender_id TEXT,
                    type TEXT NOT NULL,
                    message TEXT NOT NULL,
                    task_id TEXT,
                    offer_id TEXT,
                    chat_id TEXT,
                    read INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_notifications_recipient
                    ON notifications (recipient_id, created_at);
                """
            )
            self._db.commit()

    def _row_to_notification(self, row: sqlite3.Row) -> dict[str, Any]:
        notification = {column: row[column] for column in self._COLUMNS}
        notification["read"] = bool(notification["read"])
        return notification

    def insert_notification(self, data: dict[str, Any]) -> None:
        """Insert a notification row."""
        values = tuple(data.get(column) for column in self._COLUMNS)
        placeholders = ", ".join("?" for _ in self._COLUMNS)
        with self._lock:
            self._db.execute(
                f"INSERT INTO notifications ({', '.join(self._COLUMNS)}) VALUES ({placeholders})",
                values,
            )
            self._db.commit()

    def list_notifications(
        self,
        recipient_id: str,
        *,
        unread_only: bool,
        limit: int | None,
    ) -> list[dict[str, Any]]:
        """List a recipient's notifications, newest first."""
        query = f"SELECT {', '.join(self._COLUMNS)} FROM notifications WHERE recipient_id = ?"
        params: list[object] = [recipient_id]
        if unread_only:
            query += " AND read = 0"
        query += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._lock:
            rows = self._db.execute(query, params).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def mark_read(self, notification_id: str, recipient_id: str) -> int:
        """Mark one notification read; only matches the recipient's own rows."""
        with self._lock:
            cursor = self._db.execute(
                "UPDATE notifications SET read = 1 WHERE notification_id = ? AND recipient_id = ?",
                (notification_id, recipient_id),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def mark_all_read(self, recipient_id: str) -> int:
        """Mark every unread notification of a recipient as read."""
        with self._lock:
            cursor = self._db.execute(
                "UPDATE notifications SET read = 1 WHERE recipient_id = ? AND read = 0",
                (recipient_id,),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def count_unread(self, recipient_id: str) -> int:
        """Count unread notifications of a recipient."""
        with self._lock:
            row = self._db.execute(
                "SELECT COUNT(*) FROM notifications WHERE recipient_id = ? AND read = 0",
                (recipient_id,),
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
