"""Wiring of stores, adapters, sync and retrieval services"""

import logging

from docsync.config import config
from docsync.models.sources_config import SourcesConfig
from docsync.models.sync import SyncBatchResult, SyncProgress
from docsync.services.chunker import Chunker
from docsync.services.classifier import ContentClassifier
from docsync.services.doc_sync import DocSync, SyncError
from docsync.services.document_store import DocumentStore
from docsync.services.embedder import Embedder
from docsync.services.index_writer import IndexWriter
from docsync.services.search import RetrievalEngine
from docsync.services.source_adapter import SourceAdapter
from docsync.services.sync_tracker import SyncProgressTracker
from docsync.services.vector_index import SqliteVecIndex, VectorIndex
from docsync.utils.sources_loader import build_adapters

logger = logging.getLogger(__name__)


class Pipeline:
    """One document store, one vector index, and a DocSync per configured source"""

    def __init__(
        self,
        store: DocumentStore,
        adapters: list[SourceAdapter],
        chunker: Chunker | None = None,
        embedder: Embedder | None = None,
        vector_index: VectorIndex | None = None,
        **doc_sync_options,
    ):
        self.store = store
        self.adapters = {adapter.source_key: adapter for adapter in adapters}
        self.tracker = SyncProgressTracker(store)
        self.index_writer = IndexWriter(store, embedder, vector_index)
        self.retrieval = RetrievalEngine(store, embedder, vector_index)
        self.chunker = chunker or Chunker()
        self.vector_index = vector_index
        self.doc_sync_options = doc_sync_options

    @classmethod
    async def create(
        cls, sources_config: SourcesConfig, db_path: str | None = None
    ) -> "Pipeline":
        """
        Build the pipeline from configuration

        The vector path is optional: when it is disabled or the embedding
        model cannot be loaded, retrieval uses the keyword scorer only.
        """
        db_path = db_path or config.db_path
        store = DocumentStore(db_path)
        await store.initialize()
        logger.info(f"✓ Document store initialized: {db_path}")

        embedder: Embedder | None = None
        vector_index: SqliteVecIndex | None = None
        if config.vector_index_enabled:
            try:
                embedder = Embedder()
                vector_index = SqliteVecIndex(db_path)
                await vector_index.initialize()
                logger.info(f"✓ Vector index ready ({config.embedding_model})")
            except Exception as e:
                logger.warning(f"✗ Vector index unavailable, keyword retrieval only: {e}")
                embedder, vector_index = None, None

        chunker = Chunker(classifier=ContentClassifier.from_config())
        return cls(store, build_adapters(sources_config), chunker, embedder, vector_index)

    @property
    def source_keys(self) -> list[str]:
        return list(self.adapters)

    def doc_sync(self, source_key: str) -> DocSync:
        """
        DocSync bound to one source

        Raises:
            KeyError: If no enabled source has this name
        """
        adapter = self.adapters[source_key]
        return DocSync(
            adapter,
            self.tracker,
            self.index_writer,
            chunker=self.chunker,
            **self.doc_sync_options,
        )

    async def sync(
        self,
        source: str | None = None,
        test_mode: bool = False,
        batch_size: int | None = None,
        reset_progress: bool = False,
    ) -> list[SyncBatchResult]:
        """
        Run one sync batch per source (or for the named source only)

        A source whose enumeration fails is reported as an unsuccessful
        batch. If every requested source fails, SyncError is raised.

        Raises:
            KeyError: If source names an unknown source
            SyncError: If no requested source could be enumerated
        """
        keys = [source] if source else self.source_keys
        if source and source not in self.adapters:
            raise KeyError(source)

        results: list[SyncBatchResult] = []
        errors: list[SyncError] = []
        for key in keys:
            try:
                result = await self.doc_sync(key).sync_batch(
                    test_mode=test_mode, batch_size=batch_size, reset_progress=reset_progress
                )
            except SyncError as e:
                logger.error(f"✗ {e}")
                errors.append(e)
                results.append(
                    SyncBatchResult(
                        success=False,
                        message=e.message,
                        source_key=key,
                        test_mode=test_mode,
                        progress=await self.tracker.get_progress(key),
                    )
                )
                continue
            logger.info(f"{'✓' if result.success else '✗'} {key}: {result.message}")
            results.append(result)

        if keys and len(errors) == len(keys):
            raise SyncError(
                ", ".join(keys), "; ".join(e.message for e in errors), errors[0].cause
            ) from errors[0]
        return results

    async def status(self) -> list[SyncProgress]:
        return [await self.tracker.get_progress(key) for key in self.source_keys]

    async def close(self) -> None:
        for adapter in self.adapters.values():
            await adapter.close()
        self.store.close()
        if isinstance(self.vector_index, SqliteVecIndex):
            self.vector_index.close()
