"""Integration tests for the sqlite_vec vector index"""

import pytest
import pytest_asyncio

from docsync.services.vector_index import SqliteVecIndex, VectorRecord


@pytest_asyncio.fixture
async def index():
    index = SqliteVecIndex(":memory:", dimension=4)
    await index.initialize()
    yield index
    index.close()


class TestSqliteVecIndex:
    """Test upsert, cosine query and delete"""

    @pytest.mark.asyncio
    async def test_query_orders_by_similarity(self, index):
        await index.upsert(
            [
                VectorRecord(id="layout", values=[1.0, 0.0, 0.0, 0.0], metadata={"title": "Layouts"}),
                VectorRecord(id="state", values=[0.0, 1.0, 0.0, 0.0]),
                VectorRecord(id="mixed", values=[1.0, 1.0, 0.0, 0.0]),
            ]
        )

        matches = await index.query([1.0, 0.0, 0.0, 0.0], top_k=2)

        assert [m.id for m in matches] == ["layout", "mixed"]
        assert matches[0].score == pytest.approx(1.0)
        assert matches[0].metadata == {"title": "Layouts"}
        assert 0.0 <= matches[1].score < matches[0].score

    @pytest.mark.asyncio
    async def test_upsert_replaces_vector(self, index):
        await index.upsert([VectorRecord(id="doc", values=[1.0, 0.0, 0.0, 0.0])])
        await index.upsert([VectorRecord(id="doc", values=[0.0, 0.0, 1.0, 0.0])])

        matches = await index.query([0.0, 0.0, 1.0, 0.0], top_k=5)

        assert [m.id for m in matches] == ["doc"]
        assert matches[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_delete(self, index):
        await index.upsert(
            [
                VectorRecord(id="a", values=[1.0, 0.0, 0.0, 0.0]),
                VectorRecord(id="b", values=[0.0, 1.0, 0.0, 0.0]),
            ]
        )

        await index.delete(["a"])

        assert [m.id for m in await index.query([1.0, 0.0, 0.0, 0.0], top_k=5)] == ["b"]
        assert await index.count() == 1

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, index):
        with pytest.raises(ValueError, match="dimension mismatch"):
            await index.upsert([VectorRecord(id="a", values=[1.0, 0.0])])

        with pytest.raises(ValueError, match="dimension mismatch"):
            await index.query([1.0], top_k=1)
