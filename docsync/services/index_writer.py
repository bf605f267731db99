"""Write chunks to the document store and the vector index"""

import logging
from collections.abc import Iterable

from pydantic import BaseModel

from docsync.config import config
from docsync.models.chunk import Chunk
from docsync.services.document_store import CHUNKS, DocumentStore
from docsync.services.embedder import Embedder
from docsync.services.vector_index import VectorIndex, VectorRecord

logger = logging.getLogger(__name__)


class IndexWriteError(Exception):
    """Raised when pushing a batch of chunks to the vector index fails"""

    def __init__(self, chunk_ids: list[str], message: str):
        self.chunk_ids = chunk_ids
        self.message = message
        super().__init__(f"Failed to index {len(chunk_ids)} chunks: {message}")


class WriteResult(BaseModel):
    """Outcome of IndexWriter.write"""

    written: int = 0
    index_failures: int = 0


def vector_metadata(chunk: Chunk) -> dict:
    """Chunk fields kept next to its vector, enough to rebuild the chunk"""
    return chunk.model_dump(mode="json")


class IndexWriter:
    """
    Two-phase chunk writer

    The document store write is authoritative and all-or-nothing. The vector
    index push that follows is best effort: a failed batch is logged and
    counted, never rolled back and never raised.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: Embedder | None = None,
        vector_index: VectorIndex | None = None,
        batch_size: int | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.vector_index = vector_index
        self.batch_size = batch_size or config.embedding_batch_size

    @property
    def vector_enabled(self) -> bool:
        return self.embedder is not None and self.vector_index is not None

    async def write(self, chunks: list[Chunk]) -> WriteResult:
        """
        Persist chunks, then push them to the vector index

        Args:
            chunks: Chunks of one document

        Returns:
            WriteResult with the number of stored chunks and failed index pushes

        Raises:
            sqlite3.Error: If the document store write fails (nothing is written)
        """
        if not chunks:
            return WriteResult()

        written = await self.store.set_many(
            CHUNKS, [(chunk.id, chunk.model_dump(mode="json")) for chunk in chunks]
        )
        result = WriteResult(written=written)

        if not self.vector_enabled:
            return result

        for i in range(0, len(chunks), self.batch_size):
            batch = chunks[i : i + self.batch_size]
            try:
                await self._push(batch)
            except IndexWriteError as e:
                logger.warning(f"✗ {e}")
                result.index_failures += len(batch)

        return result

    async def _push(self, batch: list[Chunk]) -> None:
        try:
            vectors = await self.embedder.embed_batch([chunk.content for chunk in batch])
            records = [
                VectorRecord(id=chunk.id, values=vector, metadata=vector_metadata(chunk))
                for chunk, vector in zip(batch, vectors, strict=True)
            ]
            await self.vector_index.upsert(records)
        except Exception as e:
            raise IndexWriteError([chunk.id for chunk in batch], str(e)) from e

    async def prune(self, source_id: str, keep_ids: Iterable[str]) -> int:
        """
        Delete chunks of a document that a re-sync no longer produced

        Args:
            source_id: Source document identifier
            keep_ids: Chunk ids written by the latest sync of the document

        Returns:
            Number of chunks removed from the document store
        """
        keep = set(keep_ids)
        existing = await self.store.query(CHUNKS, filters={"source_id": source_id})
        stale = [row["id"] for row in existing if row["id"] not in keep]
        if not stale:
            return 0

        removed = await self.store.delete(CHUNKS, stale)
        if self.vector_index is not None:
            try:
                await self.vector_index.delete(stale)
            except Exception as e:
                logger.warning(f"✗ Failed to delete {len(stale)} stale vectors for {source_id}: {e}")

        logger.debug(f"Pruned {removed} stale chunks of {source_id}")
        return removed
