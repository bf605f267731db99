"""Persisted sync cursor, counters and per-document freshness status"""

import logging
from datetime import UTC, datetime

from docsync.models.sync import DocumentStatus, PerDocumentSyncStatus, SyncProgress
from docsync.services.document_store import SYNC_PROGRESS, SYNC_STATUS, DocumentStore

logger = logging.getLogger(__name__)


class SyncProgressTracker:
    """
    Track how far a resumable sync has progressed through each source

    Progress is keyed by source, status by document identifier. Both are
    upserts, so a retried write converges to the same record.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_progress(self, source_key: str) -> SyncProgress:
        """Stored progress, or a fresh cursor at -1 if the source was never synced"""
        data = await self.store.get(SYNC_PROGRESS, source_key)
        if data is None:
            return SyncProgress(source_key=source_key)
        return SyncProgress.model_validate(data)

    async def save_progress(self, progress: SyncProgress) -> None:
        await self.store.set(SYNC_PROGRESS, progress.source_key, progress.model_dump(mode="json"))

    async def reset(self, source_key: str) -> SyncProgress:
        """
        Rewind a source to the beginning

        The cursor goes back to -1 and counters to zero. Per-document
        statuses are kept, so unchanged documents are still skipped.
        """
        current = await self.get_progress(source_key)
        progress = SyncProgress(source_key=source_key, total_files=current.total_files)
        await self.save_progress(progress)
        logger.info(f"Reset sync progress for {source_key}")
        return progress

    async def update_total(self, progress: SyncProgress, total_files: int) -> SyncProgress:
        """Record the size of the latest enumeration if it changed"""
        if progress.total_files != total_files:
            logger.info(
                f"{progress.source_key}: total files changed "
                f"{progress.total_files} -> {total_files}"
            )
            progress.total_files = total_files
            await self.save_progress(progress)
        return progress

    async def advance(
        self, progress: SyncProgress, index: int, status: DocumentStatus
    ) -> SyncProgress:
        """
        Move the cursor past a document and bump the matching counter

        Both changes are persisted in the same write. The cursor never moves
        backwards.
        """
        progress.last_processed_index = max(progress.last_processed_index, index)
        if status == DocumentStatus.SUCCESS:
            progress.completed_files += 1
        elif status == DocumentStatus.FAILED:
            progress.failed_files += 1
        else:
            progress.skipped_files += 1
        progress.last_run_at = datetime.now(UTC)

        await self.save_progress(progress)
        return progress

    async def finish(self, progress: SyncProgress) -> SyncProgress:
        """Mark the source complete once the cursor has reached the last document"""
        progress.last_run_at = datetime.now(UTC)
        if progress.last_processed_index >= progress.total_files - 1:
            progress.is_complete = True
            logger.info(f"✓ {progress.source_key}: sync complete ({progress.total_files} files)")
        await self.save_progress(progress)
        return progress

    async def get_status(self, identifier: str) -> PerDocumentSyncStatus | None:
        data = await self.store.get(SYNC_STATUS, identifier)
        return PerDocumentSyncStatus.model_validate(data) if data else None

    async def needs_refresh(self, identifier: str, signature: str | None) -> bool:
        """
        Whether a document has to be fetched and re-indexed

        True when there is no prior status, when the stored signature differs,
        or when the new signature is unknown.
        """
        if signature is None:
            return True
        status = await self.get_status(identifier)
        if status is None:
            return True
        return status.signature != signature

    async def record_status(
        self,
        identifier: str,
        signature: str | None,
        success: bool,
        chunk_count: int,
    ) -> PerDocumentSyncStatus:
        """Upsert the freshness record of one document"""
        status = PerDocumentSyncStatus(
            identifier=identifier,
            signature=signature,
            last_synced=datetime.now(UTC),
            success=success,
            chunk_count=chunk_count,
        )
        await self.store.set(SYNC_STATUS, identifier, status.model_dump(mode="json"))
        return status

    async def list_statuses(self) -> list[PerDocumentSyncStatus]:
        rows = await self.store.query(SYNC_STATUS)
        return [PerDocumentSyncStatus.model_validate(row) for row in rows]
