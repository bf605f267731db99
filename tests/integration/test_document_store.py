"""Integration tests for the SQLite document store"""

import pytest

from docsync.services.document_store import CHUNKS, SYNC_STATUS, DocumentStore


class TestDocumentStore:
    """Test collection semantics on a real SQLite database"""

    @pytest.mark.asyncio
    async def test_set_and_get(self, store):
        await store.set(CHUNKS, "a", {"id": "a", "title": "Layouts"})

        assert await store.get(CHUNKS, "a") == {"id": "a", "title": "Layouts"}
        assert await store.get(CHUNKS, "missing") is None
        # Collections are separate namespaces
        assert await store.get(SYNC_STATUS, "a") is None

    @pytest.mark.asyncio
    async def test_upsert_keeps_insertion_order(self, store):
        await store.set_many(CHUNKS, [(k, {"id": k, "v": 1}) for k in ("a", "b", "c")])
        await store.set(CHUNKS, "a", {"id": "a", "v": 2})

        rows = await store.query(CHUNKS)

        assert [row["id"] for row in rows] == ["a", "b", "c"]
        assert rows[0]["v"] == 2
        assert await store.count(CHUNKS) == 3

    @pytest.mark.asyncio
    async def test_query_filters_order_and_limit(self, store):
        await store.set_many(
            CHUNKS,
            [
                ("x1", {"id": "x1", "source_id": "src/x.md", "chunk_index": 1}),
                ("y0", {"id": "y0", "source_id": "src/y.md", "chunk_index": 0}),
                ("x0", {"id": "x0", "source_id": "src/x.md", "chunk_index": 0}),
            ],
        )

        rows = await store.query(CHUNKS, filters={"source_id": "src/x.md"}, order_by="chunk_index")
        assert [row["id"] for row in rows] == ["x0", "x1"]

        rows = await store.query(CHUNKS, order_by="chunk_index", descending=True, limit=1)
        assert [row["id"] for row in rows] == ["x1"]

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.set_many(CHUNKS, [(k, {"id": k}) for k in ("a", "b", "c")])

        assert await store.delete(CHUNKS, ["a", "c", "missing"]) == 2
        assert await store.delete(CHUNKS, []) == 0
        assert [row["id"] for row in await store.query(CHUNKS)] == ["b"]

    @pytest.mark.asyncio
    async def test_set_many_is_atomic(self, store):
        await store.set(CHUNKS, "a", {"id": "a"})

        with pytest.raises(TypeError):
            await store.set_many(CHUNKS, [("b", {"id": "b"}), ("c", {"bad": object()})])

        assert await store.count(CHUNKS) == 1

    @pytest.mark.asyncio
    async def test_health_check(self, store):
        assert await store.health_check() is True

        uninitialized = DocumentStore(":memory:")
        assert await uninitialized.health_check() is False
        uninitialized.close()

    @pytest.mark.asyncio
    async def test_file_database_persists(self, tmp_path):
        db_path = str(tmp_path / "nested" / "docs.db")
        first = DocumentStore(db_path)
        await first.initialize()
        await first.set(CHUNKS, "a", {"id": "a"})

        second = DocumentStore(db_path)
        await second.initialize()

        assert await second.get(CHUNKS, "a") == {"id": "a"}
