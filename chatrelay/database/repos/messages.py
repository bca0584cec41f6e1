"""Message repository - chat messages stored in DuckDB."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from ...messages.models import Message
from .base import BaseRepository

logger = logging.getLogger(__name__)

# Wire field name -> column
FIELDS = {
    "id": "id",
    "sender": "sender",
    "receiver": "receiver",
    "content": "content",
    "timestamp": "timestamp",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

OPERATORS = {
    "equals": "=",
    "greater_than": ">",
    "greater_than_equal": ">=",
    "less_than": "<",
    "less_than_equal": "<=",
}


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MessageRepository(BaseRepository):
    """CRUD and query operations for the messages table."""

    table = "messages"
    columns = ("id", "sender", "receiver", "content", "timestamp", "created_at", "updated_at")


    def create_message(
        self,
        sender: str,
        receiver: str,
        content: str,
        timestamp: datetime | None = None,
        now: datetime | None = None,
    ) -> Message:
        """Insert a message and return it as stored."""
        now = now or utcnow()
        row = self._write_returning(
            f"""
            INSERT INTO {self.table} ({self.select_list})
            VALUES (?, ?, ?, ?, ?, ?, ?)
            RETURNING {self.select_list}
            """,  # noqa: S608
            [uuid.uuid4().hex, sender, receiver, content, timestamp or now, now, now],
        )
        return Message(**row)

    def update_content(self, message_id: str, content: str, now: datetime | None = None) -> Message | None:
        """Replace a message's content and bump updated_at. Returns None if unknown."""
        row = self._write_returning(
            f"""
            UPDATE {self.table} SET content = ?, updated_at = ?
            WHERE id = ?
            RETURNING {self.select_list}
            """,  # noqa: S608
            [content, now or utcnow(), message_id],
        )
        if row is None:
            logger.debug(f"Update for unknown message {message_id}")
            return None
        return Message(**row)

    def get_message(self, message_id: str) -> Message | None:
        """Fetch a single message by id."""
        row = self._fetch_one(
            f"SELECT {self.select_list} FROM {self.table} WHERE id = ?", [message_id]  # noqa: S608
        )
        return Message(**row) if row else None

    def get_recent(self, limit: int = 20) -> list[Message]:
        """Most recently updated messages, newest first."""
        return self.find(sort="-updatedAt", limit=limit)

    def find(
        self,
        where: dict[str, dict[str, Any]] | None = None,
        sort: str | None = None,
        limit: int = 10,
    ) -> list[Message]:
        """Filtered, sorted, limited query.

        ``where`` maps a wire field name to ``{operator: value}``, e.g.
        ``{"updatedAt": {"greater_than": ts}}``. ``sort`` is a field name,
        prefixed with ``-`` for descending order.
        """
        conditions: list[str] = []
        params: list[Any] = []
        for field, clause in (where or {}).items():
            column = self._column(field)
            for op, value in clause.items():
                if op not in OPERATORS:
                    raise ValueError(f"Unsupported operator: {op}")
                conditions.append(f"{column} {OPERATORS[op]} ?")
                params.append(value)

        sql = f"SELECT {self.select_list} FROM {self.table}"  # noqa: S608
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        if sort:
            direction = "DESC" if sort.startswith("-") else "ASC"
            column = self._column(sort.lstrip("-"))
            # id breaks ties so pages are stable
            sql += f" ORDER BY {column} {direction}, id {direction}"
        sql += f" LIMIT {int(limit)}"

        return [Message(**row) for row in self._fetch_all(sql, params)]

    def count(self) -> int:
        with self.get_read_connection() as conn:
            row = conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()  # noqa: S608
            return int(row[0])

    @staticmethod
    def _column(field: str) -> str:
        try:
            return FIELDS[field]
        except KeyError:
            raise ValueError(f"Unknown field: {field}") from None
