"""Sync progress and sync result models"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SyncProgress(BaseModel):
    """Persisted cursor of a resumable sync over one source"""

    source_key: str = Field(description="Key of the source this cursor belongs to")
    total_files: int = Field(default=0, ge=0, description="Documents seen at last enumeration")
    last_processed_index: int = Field(
        default=-1, ge=-1, description="Index of the last processed document (-1 = none)"
    )
    completed_files: int = Field(default=0, ge=0)
    failed_files: int = Field(default=0, ge=0)
    skipped_files: int = Field(default=0, ge=0)
    is_complete: bool = Field(default=False)
    last_run_at: datetime | None = Field(default=None)

    @property
    def next_index(self) -> int:
        return self.last_processed_index + 1

    @property
    def percentage(self) -> float:
        """Share of enumerated documents the cursor has passed, 0-100"""
        if self.total_files == 0:
            return 100.0 if self.is_complete else 0.0
        return round(min(self.next_index, self.total_files) / self.total_files * 100, 1)


class PerDocumentSyncStatus(BaseModel):
    """Freshness record for one source document, upserted after every attempt"""

    identifier: str
    signature: str | None = Field(default=None, description="Last known freshness signature")
    last_synced: datetime
    success: bool
    chunk_count: int = Field(default=0, ge=0)


class DocumentStatus(str, Enum):
    """Outcome of one document within a sync run"""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class DocumentSyncResult(BaseModel):
    """Per-document outcome reported by a sync run"""

    identifier: str
    status: DocumentStatus
    chunks: int = 0
    title: str | None = None
    signature: str | None = None
    reason: str | None = Field(default=None, description="Why a document was skipped")
    error: str | None = Field(default=None, description="Why a document failed")


class SyncBatchResult(BaseModel):
    """Summary of one sync_batch invocation"""

    success: bool
    message: str
    source_key: str
    test_mode: bool = False
    batch_start: int = 0
    batch_end: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    total_chunks: int = 0
    documents: list[DocumentSyncResult] = Field(default_factory=list)
    progress: SyncProgress
    next_batch_start: int | None = Field(
        default=None, description="Cursor position of the next run (None when complete)"
    )
    percentage: float = 0.0
    timed_out: bool = False
