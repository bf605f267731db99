"""Local text embeddings via fastembed"""

import asyncio
import logging

from fastembed import TextEmbedding

from docsync.config import config

logger = logging.getLogger(__name__)


class Embedder:
    """
    Embed queries and chunk bodies with one fastembed model

    Queries go through query_embed and chunks through passage_embed, so
    models that use instruction prefixes (the bge family) see the form they
    were trained on. Inference is CPU-bound and runs in a worker thread.
    """

    def __init__(self, model_name: str | None = None, cache_dir: str | None = None):
        self.model_name = model_name or config.embedding_model
        self.model = TextEmbedding(
            model_name=self.model_name,
            cache_dir=cache_dir or config.fastembed_cache_dir,
        )
        logger.info(f"Loaded embedding model {self.model_name}")

    async def embed_text(self, text: str) -> list[float]:
        """Embedding of a search query"""
        vectors = await asyncio.to_thread(lambda: list(self.model.query_embed(text)))
        return vectors[0].tolist()

    async def embed_batch(
        self, texts: list[str], batch_size: int | None = None
    ) -> list[list[float]]:
        """
        Embeddings of chunk bodies, in input order

        Args:
            texts: Chunk contents
            batch_size: Texts per model call (default from config)
        """
        if not texts:
            return []

        batch_size = batch_size or config.embedding_batch_size
        vectors = await asyncio.to_thread(
            lambda: list(self.model.passage_embed(texts, batch_size=batch_size))
        )
        logger.debug(f"Embedded {len(texts)} chunks with {self.model_name}")
        return [vector.tolist() for vector in vectors]
