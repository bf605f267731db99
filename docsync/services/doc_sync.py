"""Resumable documentation synchronization, one batch per invocation"""

import asyncio
import logging
import sqlite3
import time

from docsync.config import config
from docsync.models.document import DocumentFormat, ParsedDocument, SourceDocument, SourceEntry
from docsync.models.sync import DocumentStatus, DocumentSyncResult, SyncBatchResult, SyncProgress
from docsync.services.chunker import Chunker
from docsync.services.doc_parser import DocParser, ParseError
from docsync.services.html_parser import HtmlParser
from docsync.services.index_writer import IndexWriter
from docsync.services.source_adapter import FetchError, SourceAdapter
from docsync.services.sync_tracker import SyncProgressTracker

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Raised when a whole sync invocation fails (enumeration or persistence)"""

    def __init__(self, source_key: str, message: str, cause: Exception | None = None):
        self.source_key = source_key
        self.message = message
        self.cause = cause
        super().__init__(f"Sync of {source_key} failed: {message}")


class DocSync:
    """
    Synchronize one documentation source into the index

    Each sync_batch call processes the next window of the source's
    enumeration and persists the cursor after every document, so an
    interrupted run resumes where it stopped.
    """

    def __init__(
        self,
        adapter: SourceAdapter,
        tracker: SyncProgressTracker,
        index_writer: IndexWriter,
        chunker: Chunker | None = None,
        doc_parser: DocParser | None = None,
        html_parser: HtmlParser | None = None,
        batch_size: int | None = None,
        test_mode_documents: int | None = None,
        delay_seconds: float | None = None,
        time_budget_seconds: float | None = None,
    ):
        """
        Initialize documentation sync service

        Args:
            adapter: Source to enumerate and fetch
            tracker: Progress and per-document status persistence
            index_writer: Chunk writer (document store + vector index)
            chunker: Chunker service (optional, creates new if None)
            doc_parser: Markdown parser (optional, creates new if None)
            html_parser: HTML parser (optional, creates new if None)
            batch_size: Default documents per invocation
            test_mode_documents: Size of the fixed prefix processed in test mode
            delay_seconds: Pause after each non-skipped document
            time_budget_seconds: Wall-clock budget of one invocation
        """
        self.adapter = adapter
        self.tracker = tracker
        self.index_writer = index_writer
        self.chunker = chunker or Chunker()
        self.doc_parser = doc_parser or DocParser()
        self.html_parser = html_parser or HtmlParser()
        self.batch_size = batch_size or config.sync_batch_size
        self.test_mode_documents = test_mode_documents or config.test_mode_documents
        self.delay_seconds = (
            config.inter_document_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.time_budget_seconds = time_budget_seconds or config.sync_time_budget_seconds

    @property
    def source_key(self) -> str:
        return self.adapter.source_key

    async def get_progress(self) -> SyncProgress:
        return await self.tracker.get_progress(self.source_key)

    async def sync_batch(
        self,
        test_mode: bool = False,
        batch_size: int | None = None,
        reset_progress: bool = False,
    ) -> SyncBatchResult:
        """
        Process the next batch of documents

        Args:
            test_mode: Process only the first few documents without advancing the cursor
            batch_size: Documents to process (default from config)
            reset_progress: Rewind the cursor to the start before processing

        Returns:
            SyncBatchResult with per-document outcomes and the updated progress

        Raises:
            SyncError: If enumeration fails or progress cannot be persisted
        """
        started = time.monotonic()
        batch_size = batch_size or self.batch_size

        try:
            if reset_progress:
                progress = await self.tracker.reset(self.source_key)
            else:
                progress = await self.tracker.get_progress(self.source_key)
        except sqlite3.Error as e:
            raise SyncError(self.source_key, f"Cannot read sync progress: {e}", e) from e

        if progress.is_complete:
            logger.info(f"{self.source_key}: sync already complete, nothing to do")
            return SyncBatchResult(
                success=True,
                message="Sync already complete",
                source_key=self.source_key,
                test_mode=test_mode,
                progress=progress,
                batch_start=progress.next_index,
                batch_end=progress.next_index,
                percentage=100.0,
            )

        try:
            entries = await self.adapter.enumerate()
        except Exception as e:
            logger.error(f"✗ {self.source_key}: enumeration failed: {e}")
            raise SyncError(self.source_key, f"Enumeration failed: {e}", e) from e

        total = len(entries)
        if test_mode:
            start, end = 0, min(self.test_mode_documents, total)
        else:
            try:
                await self.tracker.update_total(progress, total)
            except sqlite3.Error as e:
                raise SyncError(self.source_key, f"Cannot persist progress: {e}", e) from e
            start = progress.next_index
            end = min(start + batch_size, total)

        logger.info(
            f"{self.source_key}: processing documents {start}..{end - 1} of {total}"
            f"{' (test mode)' if test_mode else ''}"
        )

        documents: list[DocumentSyncResult] = []
        timed_out = False

        for index in range(start, end):
            if time.monotonic() - started >= self.time_budget_seconds:
                logger.warning(
                    f"{self.source_key}: time budget of {self.time_budget_seconds}s exhausted "
                    f"after {len(documents)} documents"
                )
                timed_out = True
                break

            try:
                outcome = await self._sync_document(entries[index])
                if not test_mode:
                    await self.tracker.advance(progress, index, outcome.status)
            except sqlite3.Error as e:
                raise SyncError(self.source_key, f"Cannot persist sync state: {e}", e) from e
            documents.append(outcome)

            if outcome.status != DocumentStatus.SKIPPED and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

        if not test_mode:
            try:
                progress = await self.tracker.finish(progress)
            except sqlite3.Error as e:
                raise SyncError(self.source_key, f"Cannot persist progress: {e}", e) from e

        return self._build_result(progress, documents, start, end, test_mode, timed_out)

    async def _sync_document(self, entry: SourceEntry) -> DocumentSyncResult:
        """Run freshness check, fetch, parse, chunk and write for one document"""
        identifier = entry.identifier

        try:
            signature = await self.adapter.resolve_signature(entry)
        except FetchError as e:
            logger.warning(f"✗ {identifier}: cannot resolve signature: {e}")
            return await self._record_failure(identifier, str(e))

        if signature is None and self.adapter.signature_required:
            logger.info(f"Skipping {identifier}: no history in source")
            return DocumentSyncResult(
                identifier=identifier,
                status=DocumentStatus.SKIPPED,
                reason="No history in source",
            )

        if not await self.tracker.needs_refresh(identifier, signature):
            logger.debug(f"Skipping {identifier}: unchanged")
            return DocumentSyncResult(
                identifier=identifier,
                status=DocumentStatus.SKIPPED,
                signature=signature,
                reason="Unchanged",
            )

        try:
            document = SourceDocument(
                identifier=identifier,
                signature=signature,
                url=entry.url or identifier,
                raw=await self.adapter.fetch(identifier),
            )
            parsed = self._parse(document)
            chunks = await self.chunker.chunk(
                parsed, document.identifier, document.signature, url=document.url
            )
            write_result = await self.index_writer.write(chunks)
            await self.index_writer.prune(identifier, [chunk.id for chunk in chunks])
        except (FetchError, ParseError) as e:
            logger.warning(f"✗ {identifier}: {e}")
            return await self._record_failure(identifier, str(e))
        except Exception as e:
            logger.error(f"✗ {identifier}: unexpected error: {e}", exc_info=True)
            return await self._record_failure(identifier, str(e))

        await self.tracker.record_status(identifier, signature, True, write_result.written)
        logger.info(
            f"✓ {identifier}: {write_result.written} chunks"
            + (
                f" ({write_result.index_failures} not indexed)"
                if write_result.index_failures
                else ""
            )
        )
        return DocumentSyncResult(
            identifier=identifier,
            status=DocumentStatus.SUCCESS,
            chunks=write_result.written,
            title=parsed.title,
            signature=signature,
        )

    def _parse(self, document: SourceDocument) -> ParsedDocument:
        if self.adapter.document_format == DocumentFormat.HTML:
            return self.html_parser.parse(document.raw, document.identifier)
        return self.doc_parser.parse(document.raw, document.identifier)

    async def _record_failure(self, identifier: str, error: str) -> DocumentSyncResult:
        """Mark a document failed, keeping its previously stored signature"""
        previous = await self.tracker.get_status(identifier)
        previous_signature = previous.signature if previous else None
        await self.tracker.record_status(identifier, previous_signature, False, 0)
        return DocumentSyncResult(
            identifier=identifier,
            status=DocumentStatus.FAILED,
            signature=previous_signature,
            error=error,
        )

    def _build_result(
        self,
        progress: SyncProgress,
        documents: list[DocumentSyncResult],
        start: int,
        end: int,
        test_mode: bool,
        timed_out: bool,
    ) -> SyncBatchResult:
        processed = sum(1 for d in documents if d.status == DocumentStatus.SUCCESS)
        failed = sum(1 for d in documents if d.status == DocumentStatus.FAILED)
        skipped = sum(1 for d in documents if d.status == DocumentStatus.SKIPPED)

        message = (
            f"Processed {len(documents)} documents: "
            f"{processed} synced, {failed} failed, {skipped} skipped"
        )
        if timed_out:
            message += " (stopped early: time budget exhausted)"

        return SyncBatchResult(
            success=True,
            message=message,
            source_key=self.source_key,
            test_mode=test_mode,
            batch_start=start,
            batch_end=end,
            processed=processed,
            failed=failed,
            skipped=skipped,
            total_chunks=sum(d.chunks for d in documents),
            documents=documents,
            progress=progress,
            next_batch_start=None if progress.is_complete else progress.next_index,
            percentage=progress.percentage,
            timed_out=timed_out,
        )
