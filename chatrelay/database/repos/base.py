"""Base repository with shared database access."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    from ..manager import DatabaseManager


class BaseRepository:
    """Base class for repositories; rows come back as column-keyed dicts."""

    table: str = ""
    columns: tuple[str, ...] = ()

    def __init__(self, db_manager: DatabaseManager) -> None:
        self.db = db_manager

    def get_connection(self) -> Any:
        """Proxy to DatabaseManager.get_connection() (read-write)."""
        return self.db.get_connection()

    def get_read_connection(self) -> Any:
        """Proxy to DatabaseManager.get_read_connection() (read-only, no write lock)."""
        return self.db.get_read_connection()

    @property
    def select_list(self) -> str:
        return ", ".join(self.columns)

    def _fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        with self.get_read_connection() as conn:
            row = conn.execute(sql, list(params)).fetchone()
        return self._row_to_dict(row) if row else None

    def _fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        with self.get_read_connection() as conn:
            rows = conn.execute(sql, list(params)).fetchall()
        return [self._row_to_dict(row) for row in rows]

    def _write_returning(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        """Run a write whose statement ends in RETURNING <select_list>."""
        with self.get_connection() as conn:
            row = conn.execute(sql, list(params)).fetchone()
        return self._row_to_dict(row) if row else None

    def _row_to_dict(self, row: Sequence[Any]) -> dict[str, Any]:
        return dict(zip(self.columns, row))
