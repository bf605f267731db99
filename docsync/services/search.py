"""Retrieval of relevant documentation chunks"""

import logging
import time

from pydantic import ValidationError

from docsync.models.chunk import Chunk
from docsync.models.query import Query, QueryType
from docsync.models.search_result import MatchType, QueryDocsOutput, QueryInfo, ScoredChunk
from docsync.services.document_store import CHUNKS, DocumentStore
from docsync.services.embedder import Embedder
from docsync.services.keyword_scorer import KeywordScorer
from docsync.services.vector_index import VectorIndex

logger = logging.getLogger(__name__)


class RetrievalError(Exception):
    """Raised inside the engine when the vector path cannot answer; never escapes retrieve"""

    def __init__(self, query: str, message: str):
        self.query = query
        self.message = message
        super().__init__(f"Vector retrieval failed for {query!r}: {message}")


class RetrievalEngine:
    """
    Answer "which chunks are relevant to this query"

    The vector index is asked first. When it is not configured, fails or
    returns nothing, every stored chunk is ranked by the keyword scorer
    instead. Retrieval is read-only and never raises.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: Embedder | None = None,
        vector_index: VectorIndex | None = None,
        scorer: KeywordScorer | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.vector_index = vector_index
        self.scorer = scorer or KeywordScorer()

    @property
    def vector_enabled(self) -> bool:
        return self.embedder is not None and self.vector_index is not None

    async def retrieve(self, query: str, top_k: int) -> list[ScoredChunk]:
        """
        Top-k chunks for a query, most relevant first

        Args:
            query: Natural language query
            top_k: Maximum number of results

        Returns:
            Ranked chunks; an empty list when nothing can be retrieved
        """
        results, _ = await self._retrieve(query, top_k, QueryType.AUTO)
        return results

    async def query(self, query: Query) -> QueryDocsOutput:
        """
        Execute a documentation search query

        Args:
            query: Query object with search parameters

        Returns:
            QueryDocsOutput: Search results with metadata
        """
        start_time = time.time()
        results, used_fallback = await self._retrieve(query.text, query.limit, query.query_type)
        query_time_ms = (time.time() - start_time) * 1000

        return QueryDocsOutput(
            results=results,
            query_info=QueryInfo(
                original_query=query.text,
                total_results=len(results),
                query_time_ms=query_time_ms,
                used_fallback=used_fallback,
            ),
        )

    async def get_chunk(self, chunk_id: str) -> Chunk | None:
        data = await self.store.get(CHUNKS, chunk_id)
        return Chunk.model_validate(data) if data else None

    async def _retrieve(
        self, query: str, top_k: int, mode: QueryType
    ) -> tuple[list[ScoredChunk], bool]:
        """Returns (results, whether the keyword path produced them)"""
        if not query.strip() or top_k <= 0:
            return [], False

        if mode != QueryType.KEYWORD:
            try:
                results = await self._vector_search(query, top_k)
                if results:
                    return results, False
                logger.info(f"Vector search returned no results for {query!r}")
            except RetrievalError as e:
                logger.warning(f"{e}; using keyword fallback")
            except Exception as e:
                logger.warning(f"Vector result resolution failed for {query!r}: {e}")

            if mode == QueryType.SEMANTIC:
                return [], False

        try:
            return await self._keyword_search(query, top_k), True
        except Exception as e:
            logger.error(f"Keyword fallback failed for {query!r}: {e}", exc_info=True)
            return [], True

    async def _vector_search(self, query: str, top_k: int) -> list[ScoredChunk]:
        if not self.vector_enabled:
            raise RetrievalError(query, "vector index not configured")

        try:
            vector = await self.embedder.embed_text(query)
            matches = await self.vector_index.query(vector, top_k)
        except Exception as e:
            raise RetrievalError(query, str(e)) from e

        scored: list[tuple[Chunk, float]] = []
        for match in matches:
            chunk = await self._resolve(match.id, match.metadata)
            if chunk is not None:
                scored.append((chunk, match.score))

        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            ScoredChunk(chunk=chunk, score=score, rank=rank, match_type=MatchType.SEMANTIC)
            for rank, (chunk, score) in enumerate(scored[:top_k], start=1)
        ]

    async def _resolve(self, chunk_id: str, metadata: dict) -> Chunk | None:
        """The stored chunk, else the chunk rebuilt from index metadata"""
        data = await self.store.get(CHUNKS, chunk_id)
        try:
            if data:
                return Chunk.model_validate(data)
            return Chunk.model_validate(metadata)
        except ValidationError:
            logger.warning(f"Dropping vector match {chunk_id}: no usable chunk data")
            return None

    async def _keyword_search(self, query: str, top_k: int) -> list[ScoredChunk]:
        rows = await self.store.query(CHUNKS)
        chunks = [Chunk.model_validate(row) for row in rows]
        ranked = self.scorer.rank(query, chunks, top_k)
        return [
            ScoredChunk(chunk=chunk, score=score, rank=rank, match_type=MatchType.KEYWORD)
            for rank, (chunk, score) in enumerate(ranked, start=1)
        ]
