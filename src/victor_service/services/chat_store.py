"""SQLite-backed chat and message storage."""

from __future__ import annotations

import contextlib
import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any


class ChatStore:
    """SQLite-backed storage for task chats and their messages."""

    _CHAT_COLUMNS: tuple[str, ...] = (
        "chat_id",
        "task_id",
        "participant_a",
        "participant_b",
        "last_message_content",
        "last_message_sender_id",
        "last_message_at",
        "created_at",
        "updated_at",
    )
    _MESSAGE_COLUMNS: tuple[str, ...] = (
        "message_id",
        "chat_id",
        "task_id",
        "task_title",
        "sender_id",
        "sender_name",
        "recipient_id",
        "recipient_name",
        "content",
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
                CREATE TABLE IF NOT EXISTS chats (
                    chat_id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    participant_a TEXT NOT NULL,
                    participant_b TEXT NOT NULL,
                    last_message_content TEXT,
                    last_message_sender_id TEXT,
                    last_message_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (task_id, participant_a, participant_b)
                );

                CREATE TABLE IF NOT EXISTS messages (
                    message_id TEXT PRIMARY KEY,
                    chat_id TEXT NOT NULL REFERENCES chats (chat_id) ON DELETE CASCADE,
                    task_id TEXT NOT NULL,
                    task_title TEXT,
                    sender_id TEXT NOT NULL,
                    sender_name TEXT NOT NULL,
                    recipient_id TEXT NOT NULL,
                    recipient_name TEXT NOT NULL,
                    content TEXT NOT NULL,
                    read INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_messages_chat ON messages (chat_id, created_at);
                CREATE INDEX IF NOT EXISTS idx_messages_unread ON messages (recipient_id, read);
                """
            )
            self._db.commit()

    def _row_to_chat(self, row: sqlite3.Row) -> dict[str, Any]:
        last_message = None
        if row["last_message_at"] is not None:
            last_message = {
                "content": row["last_message_content"],
                "sender_id": row["last_message_sender_id"],
                "timestamp": row["last_message_at"],
            }
        return {
            "chat_id": row["chat_id"],
            "task_id": row["task_id"],
            "participants": [row["participant_a"], row["participant_b"]],
            "last_message": last_message,
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    def _row_to_message(self, row: sqlite3.Row) -> dict[str, Any]:
        message = {column: row[column] for column in self._MESSAGE_COLUMNS}
        message["read"] = bool(message["read"])
        return message

    def get_or_create_chat(
        self,
        chat_id: str,
        task_id: str,
        participants: tuple[str, str],
        created_at: str,
    ) -> tuple[dict[str, Any], bool]:
        """
        Return the chat for a task and participant pair, creating it if needed.

        Returns:
            ``(chat, created)`` where created is True for a new chat.
        """
        participant_a, participant_b = sorted(participants)
        select_sql = (
            f"SELECT {', '.join(self._CHAT_COLUMNS)} FROM chats "
            "WHERE task_id = ? AND participant_a = ? AND participant_b = ?"
        )
        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                row = self._db.execute(
                    select_sql, (task_id, participant_a, participant_b)
                ).fetchone()
                created = row is None
                if created:
                    self._db.execute(
                        "INSERT INTO chats (chat_id, task_id, participant_a, participant_b, "
                        "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                        (chat_id, task_id, participant_a, participant_b, created_at, created_at),
                    )
                    row = self._db.execute(
                        select_sql, (task_id, participant_a, participant_b)
                    ).fetchone()
                self._db.commit()
            except Exception:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise
        return self._row_to_chat(row), created

    def get_chat(self, chat_id: str) -> dict[str, Any] | None:
        """Fetch a chat by ID."""
        with self._lock:
            row = self._db.execute(
                f"SELECT {', '.join(self._CHAT_COLUMNS)} FROM chats WHERE chat_id = ?",
                (chat_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_chat(row)

    def list_chats_for_user(self, user_id: str) -> list[dict[str, Any]]:
        """List a user's chats, most recently active first, with unread counts."""
        columns = ", ".join(f"c.{column}" for column in self._CHAT_COLUMNS)
        with self._lock:
            rows = self._db.execute(
                f"SELECT {columns}, "
                "(SELECT COUNT(*) FROM messages m "
                " WHERE m.chat_id = c.chat_id AND m.recipient_id = ? AND m.read = 0) "
                "AS unread_count "
                "FROM chats c WHERE c.participant_a = ? OR c.participant_b = ? "
                "ORDER BY c.updated_at DESC",
                (user_id, user_id, user_id),
            ).fetchall()
        chats = []
        for row in rows:
            chat = self._row_to_chat(row)
            chat["unread_count"] = int(row["unread_count"])
            chats.append(chat)
        return chats

    def insert_message(self, message_data: dict[str, Any]) -> None:
        """Insert a message and record it as the chat's last message."""
        values = tuple(message_data[column] for column in self._MESSAGE_COLUMNS)
        placeholders = ", ".join("?" for _ in self._MESSAGE_COLUMNS)
        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                self._db.execute(
                    f"INSERT INTO messages ({', '.join(self._MESSAGE_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    values,
                )
                self._db.execute(
                    "UPDATE chats SET last_message_content = ?, last_message_sender_id = ?, "
                    "last_message_at = ?, updated_at = ? WHERE chat_id = ?",
                    (
                        message_data["content"],
                        message_data["sender_id"],
                        message_data["created_at"],
                        message_data["created_at"],
                        message_data["chat_id"],
                    ),
                )
                self._db.commit()
            except Exception:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise

    def list_messages(
        self,
        chat_id: str,
        *,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """List a chat's messages, oldest first."""
        query = (
            f"SELECT {', '.join(self._MESSAGE_COLUMNS)} FROM messages "
            "WHERE chat_id = ? ORDER BY created_at, rowid"
        )
        params: list[object] = [chat_id]
        if limit is not None or offset is not None:
            query += " LIMIT ?"
            params.append(limit if limit is not None else -1)
        if offset is not None:
            query += " OFFSET ?"
            params.append(offset)
        with self._lock:
            rows = self._db.execute(query, params).fetchall()
        return [self._row_to_message(row) for row in rows]

    def mark_read(self, chat_id: str, recipient_id: str) -> int:
        """Mark every unread message addressed to recipient_id in a chat as read."""
        with self._lock:
            cursor = self._db.execute(
                "UPDATE messages SET read = 1 WHERE chat_id = ? AND recipient_id = ? AND read = 0",
                (chat_id, recipient_id),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def count_unread(self, user_id: str) -> int:
        """Count unread messages addressed to a user across all chats."""
        with self._lock:
            row = self._db.execute(
                "SELECT COUNT(*) FROM messages WHERE recipient_id = ? AND read = 0",
                (user_id,),
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
