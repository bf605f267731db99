"""Data models for the documentation sync pipeline"""

from docsync.models.chunk import CODE_CHUNK_INDEX, Chunk, ContentType
from docsync.models.document import (
    CodeBlock,
    DocumentFormat,
    ParsedDocument,
    Section,
    SourceDocument,
    SourceEntry,
)
from docsync.models.query import Query, QueryType
from docsync.models.search_result import MatchType, QueryDocsOutput, QueryInfo, ScoredChunk
from docsync.models.sync import (
    DocumentStatus,
    DocumentSyncResult,
    PerDocumentSyncStatus,
    SyncBatchResult,
    SyncProgress,
)

__all__ = [
    "CODE_CHUNK_INDEX",
    "Chunk",
    "ContentType",
    "CodeBlock",
    "DocumentFormat",
    "ParsedDocument",
    "Section",
    "SourceDocument",
    "SourceEntry",
    "Query",
    "QueryType",
    "MatchType",
    "ScoredChunk",
    "QueryInfo",
    "QueryDocsOutput",
    "DocumentStatus",
    "DocumentSyncResult",
    "PerDocumentSyncStatus",
    "SyncBatchResult",
    "SyncProgress",
]
