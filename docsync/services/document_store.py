"""SQLite-backed document store with collection semantics"""

import json
import logging
import sqlite3
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from docsync.config import config

logger = logging.getLogger(__name__)

CHUNKS = "chunks"
SYNC_STATUS = "sync_status"
SYNC_PROGRESS = "sync_progress"


class DocumentStore:
    """
    Authoritative store for chunks, per-document sync status and sync progress

    Each record is a JSON document addressed by (collection, id). Upserts keep
    the original row position, so unfiltered queries return records in the
    order they were first inserted.
    """

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or config.db_path
        # For :memory: databases, we need to keep a persistent connection
        # because each connection gets a separate in-memory database
        self._memory_conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Create and configure a new database connection

        For :memory: databases, returns the persistent connection.
        For file databases, creates a new connection.
        """
        if self.db_path == ":memory:":
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(self.db_path)
                self._memory_conn.row_factory = sqlite3.Row
            return self._memory_conn

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_connection(
        self, conn: sqlite3.Connection | None
    ) -> tuple[sqlite3.Connection, bool]:
        """
        Ensure we have a connection, creating one if needed

        Args:
            conn: Optional existing connection

        Returns:
            Tuple of (connection, should_close)
        """
        if conn is not None:
            return conn, False

        new_conn = self._get_connection()
        # Never close :memory: connections (they're persistent)
        should_close = self.db_path != ":memory:"
        return new_conn, should_close

    async def initialize(self) -> None:
        """Create the database file and schema if missing"""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn, should_close = self._ensure_connection(None)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, id)
                )
            """)
            conn.commit()
        finally:
            if should_close:
                conn.close()

    async def get(
        self, collection: str, doc_id: str, conn: sqlite3.Connection | None = None
    ) -> dict[str, Any] | None:
        """
        Fetch one record

        Args:
            collection: Collection name
            doc_id: Record id
            conn: Optional connection (for transactions)

        Returns:
            The stored record, or None if absent
        """
        conn, should_close = self._ensure_connection(conn)

        try:
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
            return json.loads(row["data"]) if row else None
        finally:
            if should_close:
                conn.close()

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """Upsert one record"""
        await self.set_many(collection, [(doc_id, data)], conn=conn)

    async def set_many(
        self,
        collection: str,
        items: Iterable[tuple[str, dict[str, Any]]],
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """
        Upsert many records in a single transaction

        Either every record is written or none is.

        Args:
            collection: Collection name
            items: (id, record) pairs
            conn: Optional connection (for transactions)

        Returns:
            Number of records written
        """
        conn, should_close = self._ensure_connection(conn)
        rows = [(collection, doc_id, json.dumps(data)) for doc_id, data in items]

        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO documents (collection, id, data, updated_at)
                    VALUES (?, ?, ?, datetime('now'))
                    ON CONFLICT(collection, id) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                """,
                    rows,
                )
            return len(rows)
        finally:
            if should_close:
                conn.close()

    async def delete(
        self, collection: str, doc_ids: Iterable[str], conn: sqlite3.Connection | None = None
    ) -> int:
        """Delete records by id, returning how many existed"""
        ids = list(doc_ids)
        if not ids:
            return 0

        conn, should_close = self._ensure_connection(conn)
        try:
            with conn:
                cursor = conn.executemany(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    [(collection, doc_id) for doc_id in ids],
                )
            return cursor.rowcount
        finally:
            if should_close:
                conn.close()

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> list[dict[str, Any]]:
        """
        Query records of a collection

        Args:
            collection: Collection name
            filters: Field equality filters on top-level record fields
            order_by: Record field to sort by (default: insertion order)
            descending: Sort direction for order_by
            limit: Maximum number of records
            conn: Optional connection (for transactions)

        Returns:
            Matching records
        """
        conn, should_close = self._ensure_connection(conn)

        sql = "SELECT data FROM documents WHERE collection = ?"
        params: list[Any] = [collection]
        for field, value in (filters or {}).items():
            sql += " AND json_extract(data, ?) = ?"
            params.extend([f"$.{field}", value])

        if order_by:
            sql += f" ORDER BY json_extract(data, ?) {'DESC' if descending else 'ASC'}, rowid"
            params.append(f"$.{order_by}")
        else:
            sql += " ORDER BY rowid"

        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        try:
            cursor = conn.execute(sql, params)
            return [json.loads(row["data"]) for row in cursor.fetchall()]
        finally:
            if should_close:
                conn.close()

    async def count(self, collection: str, conn: sqlite3.Connection | None = None) -> int:
        """Number of records in a collection"""
        conn, should_close = self._ensure_connection(conn)

        try:
            result = conn.execute(
                "SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,)
            ).fetchone()
            return result[0] if result else 0
        finally:
            if should_close:
                conn.close()

    async def health_check(self, conn: sqlite3.Connection | None = None) -> bool:
        """Check if the schema is in place"""
        conn, should_close = self._ensure_connection(conn)

        try:
            conn.execute("SELECT COUNT(*) FROM documents").fetchone()
            return True
        except sqlite3.Error as e:
            logger.warning(f"Document store health check failed: {e}")
            return False
        finally:
            if should_close:
                conn.close()

    def close(self) -> None:
        """
        Close database connection

        For :memory: databases, closes the persistent connection.
        For file databases, this is a no-op (connections are per-method).
        """
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None
