"""Integration tests for the resumable documentation sync workflow"""

import pytest

from docsync.models.document import DocumentFormat
from docsync.models.sync import DocumentStatus
from docsync.services.chunker import Chunker
from docsync.services.doc_sync import DocSync, SyncError
from docsync.services.document_store import CHUNKS, SYNC_STATUS
from docsync.services.index_writer import IndexWriter
from docsync.services.source_adapter import FetchError
from docsync.services.sync_tracker import SyncProgressTracker
from tests.fakes import FakeAdapter, FakeEmbedder, FakeVectorIndex, markdown_doc

TOPICS = ["Layouts", "Navigation", "State management", "Animations", "Testing"]


def documents(signature: str = "v1") -> dict[str, tuple[str | None, str]]:
    return {
        f"src/{topic.lower().replace(' ', '-')}.md": (f"{signature}-{i}", markdown_doc(topic))
        for i, topic in enumerate(TOPICS)
    }


def make_sync(store, adapter, **options) -> DocSync:
    options.setdefault("delay_seconds", 0)
    return DocSync(
        adapter,
        SyncProgressTracker(store),
        IndexWriter(store, FakeEmbedder(), FakeVectorIndex()),
        chunker=Chunker(),
        **options,
    )


class TestSyncBatch:
    """Test batch windows, cursor persistence and completion"""

    @pytest.mark.asyncio
    async def test_first_batch_processes_window(self, store):
        doc_sync = make_sync(store, FakeAdapter(documents()))

        result = await doc_sync.sync_batch(batch_size=2)

        assert result.success is True
        assert (result.batch_start, result.batch_end) == (0, 2)
        assert result.processed == 2
        assert [d.identifier for d in result.documents] == ["src/layouts.md", "src/navigation.md"]
        assert result.documents[0].title == "Layouts"
        assert result.total_chunks == await store.count(CHUNKS)
        assert result.next_batch_start == 2
        assert result.progress.last_processed_index == 1
        assert result.progress.total_files == 5
        assert result.percentage == 40.0

    @pytest.mark.asyncio
    async def test_batches_resume_until_complete(self, store):
        adapter = FakeAdapter(documents())
        doc_sync = make_sync(store, adapter)

        windows = []
        for _ in range(3):
            result = await make_sync(store, adapter).sync_batch(batch_size=2)
            windows.append((result.batch_start, result.batch_end))

        assert windows == [(0, 2), (2, 4), (4, 5)]
        progress = await doc_sync.get_progress()
        assert progress.is_complete is True
        assert progress.completed_files == 5
        assert result.next_batch_start is None
        assert result.percentage == 100.0
        assert adapter.fetched == list(documents())

    @pytest.mark.asyncio
    async def test_complete_source_is_a_no_op(self, store):
        adapter = FakeAdapter(documents())
        doc_sync = make_sync(store, adapter)
        await doc_sync.sync_batch(batch_size=10)
        calls = adapter.enumerate_calls

        result = await doc_sync.sync_batch(batch_size=10)

        assert result.success is True
        assert result.message == "Sync already complete"
        assert result.documents == []
        assert adapter.enumerate_calls == calls

    @pytest.mark.asyncio
    async def test_reset_with_unchanged_sources_skips_everything(self, store):
        adapter = FakeAdapter(documents())
        doc_sync = make_sync(store, adapter)
        await doc_sync.sync_batch(batch_size=10)
        chunk_count = await store.count(CHUNKS)

        result = await doc_sync.sync_batch(batch_size=10, reset_progress=True)

        assert result.skipped == 5
        assert result.processed == 0
        assert {d.reason for d in result.documents} == {"Unchanged"}
        assert await store.count(CHUNKS) == chunk_count
        assert len(adapter.fetched) == 5
        assert result.progress.is_complete is True

    @pytest.mark.asyncio
    async def test_changed_signature_is_resynced_and_pruned(self, store):
        docs = documents()
        adapter = FakeAdapter(docs)
        doc_sync = make_sync(store, adapter)
        await doc_sync.sync_batch(batch_size=10)

        long_body = "\n\n".join(f"Paragraph {n} " + "about layout widgets " * 20 for n in range(6))
        docs["src/layouts.md"] = ("v2-0", markdown_doc("Layouts", long_body))
        await doc_sync.sync_batch(batch_size=10, reset_progress=True)
        grown = await store.query(CHUNKS, filters={"source_id": "src/layouts.md"})

        docs["src/layouts.md"] = ("v3-0", markdown_doc("Layouts"))
        result = await doc_sync.sync_batch(batch_size=10, reset_progress=True)
        shrunk = await store.query(CHUNKS, filters={"source_id": "src/layouts.md"})

        assert result.processed == 1
        assert result.skipped == 4
        assert len(grown) > len(shrunk) == 1
        assert shrunk[0]["signature"] == "v3-0"
        status = await store.get(SYNC_STATUS, "src/layouts.md")
        assert status["signature"] == "v3-0"
        assert status["chunk_count"] == 1

    @pytest.mark.asyncio
    async def test_failed_document_advances_cursor(self, store):
        adapter = FakeAdapter(documents(), failing={"src/navigation.md"})
        doc_sync = make_sync(store, adapter)

        result = await doc_sync.sync_batch(batch_size=3)

        assert result.success is True
        assert [d.status for d in result.documents] == [
            DocumentStatus.SUCCESS,
            DocumentStatus.FAILED,
            DocumentStatus.SUCCESS,
        ]
        assert "HTTP 500" in result.documents[1].error
        assert result.failed == 1
        assert result.progress.last_processed_index == 2
        assert result.progress.failed_files == 1
        status = await store.get(SYNC_STATUS, "src/navigation.md")
        assert status["success"] is False
        assert status["signature"] is None

    @pytest.mark.asyncio
    async def test_failed_document_is_retried_after_reset(self, store):
        docs = documents()
        adapter = FakeAdapter(docs, failing={"src/navigation.md"})
        doc_sync = make_sync(store, adapter)
        await doc_sync.sync_batch(batch_size=10)

        adapter.failing.clear()
        result = await doc_sync.sync_batch(batch_size=10, reset_progress=True)

        by_id = {d.identifier: d.status for d in result.documents}
        assert by_id["src/navigation.md"] == DocumentStatus.SUCCESS
        assert by_id["src/layouts.md"] == DocumentStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_unparseable_document_fails_alone(self, store):
        docs = documents()
        docs["src/layouts.md"] = ("v1-0", "---\ntitle: [broken\n---\n\n# Layouts\n")
        doc_sync = make_sync(store, FakeAdapter(docs))

        result = await doc_sync.sync_batch(batch_size=2)

        assert [d.status for d in result.documents] == [
            DocumentStatus.FAILED,
            DocumentStatus.SUCCESS,
        ]
        assert "Invalid front matter" in result.documents[0].error

    @pytest.mark.asyncio
    async def test_enumeration_failure_raises_sync_error(self, store):
        adapter = FakeAdapter(
            documents(), enumerate_error=FetchError("https://api.github.com", 503, "HTTP 503")
        )
        doc_sync = make_sync(store, adapter)

        with pytest.raises(SyncError) as exc_info:
            await doc_sync.sync_batch()

        assert exc_info.value.source_key == "fake-docs"
        assert isinstance(exc_info.value.cause, FetchError)
        assert (await doc_sync.get_progress()).last_processed_index == -1

    @pytest.mark.asyncio
    async def test_document_without_history_is_skipped(self, store):
        docs = documents()
        docs["src/layouts.md"] = (None, markdown_doc("Layouts"))
        adapter = FakeAdapter(docs, signature_required=True)
        doc_sync = make_sync(store, adapter)

        result = await doc_sync.sync_batch(batch_size=1)

        assert result.documents[0].status == DocumentStatus.SKIPPED
        assert result.documents[0].reason == "No history in source"
        assert adapter.fetched == []
        assert result.progress.last_processed_index == 0

    @pytest.mark.asyncio
    async def test_unknown_signature_always_refreshes(self, store):
        docs = {"https://docs.example.dev/ui": (None, markdown_doc("UI"))}
        adapter = FakeAdapter(docs)
        doc_sync = make_sync(store, adapter)

        await doc_sync.sync_batch()
        await doc_sync.sync_batch(reset_progress=True)

        assert adapter.fetched == ["https://docs.example.dev/ui"] * 2

    @pytest.mark.asyncio
    async def test_time_budget_stops_early(self, store):
        adapter = FakeAdapter(documents(), fetch_delay=0.2)
        doc_sync = make_sync(store, adapter, time_budget_seconds=0.1)

        result = await doc_sync.sync_batch(batch_size=5)

        assert result.timed_out is True
        assert len(result.documents) == 1
        assert result.next_batch_start == 1
        assert "time budget" in result.message

    @pytest.mark.asyncio
    async def test_html_source_uses_html_parser(self, store):
        page = (
            "<html><head><title>Layout</title></head><body><main><h1>Layouts</h1>"
            "<p>Flutter layouts are built from widgets. Rows and columns arrange children "
            "horizontally and vertically, and containers add padding and decoration.</p>"
            "</main></body></html>"
        )
        adapter = FakeAdapter(
            {"https://docs.example.dev/ui/layout": ("2026-01-01", page)},
            document_format=DocumentFormat.HTML,
        )
        doc_sync = make_sync(store, adapter)

        result = await doc_sync.sync_batch()

        assert result.processed == 1
        assert result.documents[0].title == "Layouts"
        chunk = await store.get(CHUNKS, "docs_example_dev_ui_layout_chunk_0")
        assert chunk["url"] == "https://docs.example.dev/ui/layout"


class TestTestMode:
    """Test that test mode processes a fixed prefix and leaves the cursor alone"""

    @pytest.mark.asyncio
    async def test_test_mode_leaves_progress_untouched(self, store):
        adapter = FakeAdapter(documents())
        doc_sync = make_sync(store, adapter, test_mode_documents=3)

        result = await doc_sync.sync_batch(test_mode=True, batch_size=1)

        assert result.test_mode is True
        assert len(result.documents) == 3
        assert (await doc_sync.get_progress()).last_processed_index == -1
        assert await store.count(CHUNKS) > 0

    @pytest.mark.asyncio
    async def test_test_mode_applies_reset(self, store):
        adapter = FakeAdapter(documents())
        doc_sync = make_sync(store, adapter)
        await doc_sync.sync_batch(batch_size=2)

        result = await doc_sync.sync_batch(test_mode=True, reset_progress=True)

        assert len(result.documents) == 3
        progress = await doc_sync.get_progress()
        assert progress.last_processed_index == -1
        assert progress.completed_files == 0

    @pytest.mark.asyncio
    async def test_test_mode_on_complete_source_is_a_no_op(self, store):
        adapter = FakeAdapter(documents())
        doc_sync = make_sync(store, adapter)
        await doc_sync.sync_batch(batch_size=10)
        calls = adapter.enumerate_calls

        result = await doc_sync.sync_batch(test_mode=True)

        assert result.message == "Sync already complete"
        assert result.test_mode is True
        assert result.documents == []
        assert adapter.enumerate_calls == calls

    @pytest.mark.asyncio
    async def test_test_mode_with_reset_runs_on_complete_source(self, store):
        adapter = FakeAdapter(documents())
        doc_sync = make_sync(store, adapter)
        await doc_sync.sync_batch(batch_size=10)

        result = await doc_sync.sync_batch(test_mode=True, reset_progress=True)

        assert len(result.documents) == 3
        assert result.skipped == 3
        assert (await doc_sync.get_progress()).is_complete is False
