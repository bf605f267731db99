"""Vector index contract and the default sqlite_vec implementation"""

import json
import logging
import sqlite3
import struct
from pathlib import Path
from typing import Any, Protocol

import sqlite_vec
from pydantic import BaseModel, Field

from docsync.config import config

logger = logging.getLogger(__name__)


class VectorRecord(BaseModel):
    """A vector plus the chunk metadata stored alongside it"""

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorMatch(BaseModel):
    """A nearest-neighbour hit; higher score is more similar"""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorIndex(Protocol):
    """Approximate nearest-neighbour index over chunk embeddings"""

    async def upsert(self, records: list[VectorRecord]) -> None: ...

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]: ...

    async def delete(self, ids: list[str]) -> None: ...


def _serialize(vector: list[float]) -> bytes:
    return struct.pack(f"{len(vector)}f", *vector)


class SqliteVecIndex:
    """Local vector index on a sqlite_vec vec0 virtual table (cosine distance)"""

    def __init__(self, db_path: str | None = None, dimension: int | None = None):
        self.db_path = db_path or config.db_path
        self.dimension = dimension or config.embedding_dimension
        self._memory_conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Create a connection with the sqlite_vec extension loaded

        For :memory: databases, returns the persistent connection.
        """
        if self.db_path == ":memory:" and self._memory_conn is not None:
            return self._memory_conn

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)

        if self.db_path == ":memory:":
            self._memory_conn = conn
        return conn

    def _ensure_connection(
        self, conn: sqlite3.Connection | None
    ) -> tuple[sqlite3.Connection, bool]:
        if conn is not None:
            return conn, False
        return self._get_connection(), self.db_path != ":memory:"

    async def initialize(self) -> None:
        """Create the vec0 table and its metadata table"""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn, should_close = self._ensure_connection(None)
        try:
            # vec0 is optimized for vector similarity search
            conn.execute(f"""
                CREATE VIRTUAL TABLE IF NOT EXISTS vec_chunks USING vec0(
                    chunk_id TEXT PRIMARY KEY,
                    embedding FLOAT[{self.dimension}] distance_metric=cosine
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS vec_chunks_metadata (
                    chunk_id TEXT PRIMARY KEY,
                    model_name TEXT NOT NULL,
                    metadata TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
        finally:
            if should_close:
                conn.close()

    async def upsert(
        self, records: list[VectorRecord], conn: sqlite3.Connection | None = None
    ) -> None:
        """
        Insert or replace vectors

        Raises:
            ValueError: If a vector has the wrong dimension
        """
        for record in records:
            if len(record.values) != self.dimension:
                raise ValueError(
                    f"Embedding dimension mismatch for {record.id}: "
                    f"expected {self.dimension}, got {len(record.values)}"
                )

        conn, should_close = self._ensure_connection(conn)
        try:
            with conn:
                for record in records:
                    # vec0 tables do not support INSERT OR REPLACE
                    conn.execute("DELETE FROM vec_chunks WHERE chunk_id = ?", (record.id,))
                    conn.execute(
                        "INSERT INTO vec_chunks (chunk_id, embedding) VALUES (?, ?)",
                        (record.id, _serialize(record.values)),
                    )
                    conn.execute(
                        """
                        INSERT OR REPLACE INTO vec_chunks_metadata (
                            chunk_id, model_name, metadata, created_at
                        ) VALUES (?, ?, ?, datetime('now'))
                    """,
                        (record.id, config.embedding_model, json.dumps(record.metadata)),
                    )
        finally:
            if should_close:
                conn.close()

    async def query(
        self, vector: list[float], top_k: int, conn: sqlite3.Connection | None = None
    ) -> list[VectorMatch]:
        """
        KNN search, most similar first

        Args:
            vector: Query embedding
            top_k: Maximum number of matches

        Returns:
            Matches with similarity score in [0, 1]
        """
        if len(vector) != self.dimension:
            raise ValueError(
                f"Query embedding dimension mismatch: expected {self.dimension}, "
                f"got {len(vector)}"
            )

        conn, should_close = self._ensure_connection(conn)
        try:
            # Note: sqlite_vec requires k = ? in WHERE clause instead of separate LIMIT
            cursor = conn.execute(
                """
                SELECT v.chunk_id, v.distance, m.metadata
                FROM vec_chunks v
                LEFT JOIN vec_chunks_metadata m ON m.chunk_id = v.chunk_id
                WHERE v.embedding MATCH ? AND k = ?
                ORDER BY v.distance
            """,
                (_serialize(vector), top_k),
            )

            matches = []
            for row in cursor.fetchall():
                # Cosine distance is in range [0, 2], convert to similarity [0, 1]
                similarity = 1.0 - (row["distance"] / 2.0)
                metadata = json.loads(row["metadata"]) if row["metadata"] else {}
                matches.append(VectorMatch(id=row["chunk_id"], score=similarity, metadata=metadata))
            return matches
        finally:
            if should_close:
                conn.close()

    async def delete(self, ids: list[str], conn: sqlite3.Connection | None = None) -> None:
        if not ids:
            return

        conn, should_close = self._ensure_connection(conn)
        try:
            with conn:
                conn.executemany(
                    "DELETE FROM vec_chunks WHERE chunk_id = ?", [(i,) for i in ids]
                )
                conn.executemany(
                    "DELETE FROM vec_chunks_metadata WHERE chunk_id = ?", [(i,) for i in ids]
                )
        finally:
            if should_close:
                conn.close()

    async def count(self, conn: sqlite3.Connection | None = None) -> int:
        conn, should_close = self._ensure_connection(conn)
        try:
            result = conn.execute("SELECT COUNT(*) FROM vec_chunks_metadata").fetchone()
            return result[0] if result else 0
        finally:
            if should_close:
                conn.close()

    def close(self) -> None:
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None
