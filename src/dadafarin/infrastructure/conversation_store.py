"""Durable conversation log.

Every turn is one immutable row; a conversation is the ordered set of rows
sharing ``(user_id, conversation_id)``. The conversation's display name is
denormalized onto every row. Only whole conversations can be deleted.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from dadafarin.domain.models import ConversationSummary, Sender, Turn

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS conversations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    conversation_id TEXT NOT NULL,
    sender TEXT NOT NULL CHECK(sender IN ('user', 'assistant')),
    message TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_conversations_user_conv
    ON conversations(user_id, conversation_id, created_at);
"""


def _utcnow() -> str:
    # Microsecond resolution keeps turns of one request in creation order.
    return datetime.now(UTC).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ConversationStore:
    """Append-only conversation turns stored in SQLite."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open (or create) the database and ensure the schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(_SCHEMA_SQL)
        self.conn.commit()
        logger.info("Conversation store ready at {}", self.db_path)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(
        self, user_id: int, conversation_id: str, sender: Sender, message: str, name: str
    ) -> Turn:
        """Persist one turn and return it."""
        assert self.conn
        now = _utcnow()
        cur = self.conn.execute(
            "INSERT INTO conversations (user_id, conversation_id, sender, message, name, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, conversation_id, str(sender), message, name, now),
        )
        self.conn.commit()
        return Turn(
            id=cur.lastrowid,
            user_id=user_id,
            conversation_id=conversation_id,
            sender=Sender(sender),
            message=message,
            name=name,
            created_at=now,
        )

    def delete_all(self, user_id: int, conversation_id: str) -> int:
        """Delete every turn of one conversation; return the number of rows removed."""
        assert self.conn
        cur = self.conn.execute(
            "DELETE FROM conversations WHERE user_id = ? AND conversation_id = ?",
            (user_id, conversation_id),
        )
        self.conn.commit()
        logger.info(
            "Deleted conversation {} of user {} ({} turns)", conversation_id, user_id, cur.rowcount
        )
        return cur.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_ordered(self, user_id: int, conversation_id: str) -> list[Turn]:
        """Return all turns of one conversation, oldest first."""
        assert self.conn
        rows = self.conn.execute(
            "SELECT * FROM conversations WHERE user_id = ? AND conversation_id = ? "
            "ORDER BY created_at ASC, id ASC",
            (user_id, conversation_id),
        ).fetchall()
        return [self._row_to_turn(row) for row in rows]

    def get_name(self, user_id: int, conversation_id: str) -> str | None:
        assert self.conn
        row = self.conn.execute(
            "SELECT name FROM conversations WHERE user_id = ? AND conversation_id = ? "
            "ORDER BY created_at ASC, id ASC LIMIT 1",
            (user_id, conversation_id),
        ).fetchone()
        return row["name"] if row else None

    def list_conversations(self, user_id: int) -> list[ConversationSummary]:
        """Return one summary per conversation of *user_id*, most recently active first."""
        assert self.conn
        rows = self.conn.execute(
            """
            SELECT conversation_id, MIN(name) AS name, MAX(created_at) AS created_at
            FROM conversations
            WHERE user_id = ?
            GROUP BY conversation_id
            ORDER BY created_at DESC, MAX(id) DESC
            """,
            (user_id,),
        ).fetchall()
        return [
            ConversationSummary(
                conversation_id=row["conversation_id"],
                name=row["name"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_turn(row: sqlite3.Row) -> Turn:
        return Turn(
            id=row["id"],
            user_id=row["user_id"],
            conversation_id=row["conversation_id"],
            sender=Sender(row["sender"]),
            message=row["message"],
            name=row["name"],
            created_at=row["created_at"],
        )
