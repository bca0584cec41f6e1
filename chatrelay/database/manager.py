"""
Database Manager for chatrelay
Owns the DuckDB file and hands out writer/reader connections
"""
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import duckdb

from ..config import config
from .repos import MessageRepository

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS messages (
        id VARCHAR PRIMARY KEY,
        sender VARCHAR NOT NULL,
        receiver VARCHAR NOT NULL,
        content VARCHAR NOT NULL,
        timestamp TIMESTAMP NOT NULL,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
"""


class DatabaseManager:
    """
    Database manager for the messages store
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize database manager

        Args:
            db_path: Path to database file
        """
        self.db_path = Path(db_path or config.DB_PATH)

        # Create database directory if needed
        self.db_path.parent.mkdir(exist_ok=True, parents=True)

        # DuckDB allows a single writer; reads use their own cursors
        self._conn = duckdb.connect(str(self.db_path))
        self._write_lock = threading.Lock()

        self.messages_repo = MessageRepository(self)

        # Initialize database
        self._init_database()

    @contextmanager
    def get_connection(self):
        """Context manager for the serialized read-write connection"""
        with self._write_lock:
            cursor = self._conn.cursor()
            try:
                yield cursor
            except duckdb.Error as e:
                logger.error(f"Database error: {e}")
                raise
            finally:
                cursor.close()

    @contextmanager
    def get_read_connection(self):
        """Context manager for a read-only cursor (no write lock)"""
        cursor = self._conn.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    def _init_database(self) -> None:
        """Initialize database schema"""
        with self.get_connection() as conn:
            conn.execute(SCHEMA)
        logger.info(f"Database initialized at {self.db_path}")

    def find(
        self,
        collection: str,
        where: Optional[Dict[str, Dict[str, Any]]] = None,
        sort: Optional[str] = None,
        limit: int = 10,
    ) -> List[Any]:
        """Collection query used by the stream poller.

        Only the ``messages`` collection is stored here.
        """
        if collection != 'messages':
            raise ValueError(f"Unknown collection: {collection}")
        return self.messages_repo.find(where=where, sort=sort, limit=limit)

    def close(self) -> None:
        """Close the underlying DuckDB connection"""
        self._conn.close()
