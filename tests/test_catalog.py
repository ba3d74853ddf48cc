"""Document listing, retrieval and removal."""

import pytest
from sqlalchemy import func, select

from docgraph.errors import DocumentNotFoundError
from docgraph.models import GraphEdge, GraphNode
from docgraph.services.catalog import DocumentCatalog


@pytest.fixture
def catalog(documents, storage, vector_index, persister) -> DocumentCatalog:
    return DocumentCatalog(documents=documents, storage=storage, vector_index=vector_index, persister=persister)


class TestCatalog:
    @pytest.mark.asyncio
    async def test_list_is_scoped_to_user(self, orchestrator, catalog) -> None:
        await orchestrator.ingest("doc-1", "a.txt", "alpha", user_id="u1")
        await orchestrator.ingest("doc-2", "b.txt", "beta", user_id="u1")
        await orchestrator.ingest("doc-3", "c.txt", "gamma", user_id="u2")

        docs = await catalog.list("u1")

        assert {d.id for d in docs} == {"doc-1", "doc-2"}
        assert all(d.status == "indexed" for d in docs)
        assert await catalog.list("nobody") == []

    @pytest.mark.asyncio
    async def test_get_returns_full_content_from_storage(self, orchestrator, catalog) -> None:
        content = "word " * 400
        await orchestrator.ingest("doc-1", "long.txt", content, {"tag": "x"}, user_id="u1")

        detail = await catalog.get("doc-1")

        assert detail.content == content
        assert detail.content_preview == content[:500]
        assert detail.metadata == {"tag": "x"}
        assert detail.chunk_count == 4

    @pytest.mark.asyncio
    async def test_get_without_content(self, orchestrator, catalog) -> None:
        await orchestrator.ingest("doc-1", "a.txt", "alpha", user_id="u1")
        assert (await catalog.get("doc-1", include_content=False)).content is None

    @pytest.mark.asyncio
    async def test_get_unknown_raises(self, catalog) -> None:
        with pytest.raises(DocumentNotFoundError):
            await catalog.get("missing")

    @pytest.mark.asyncio
    async def test_delete_removes_every_trace(
        self, orchestrator, catalog, documents, storage, vector_index, session_factory
    ) -> None:
        result = await orchestrator.ingest("doc-1", "a.txt", "a" * 1200, user_id="u1")
        assert len(vector_index) == 3

        await catalog.delete("doc-1")

        assert await documents.get("doc-1") is None
        assert await storage.get(result.storage_key) is None
        assert len(vector_index) == 0
        async with session_factory() as session:
            assert await session.get(GraphNode, "DOC:doc-1") is None
            mentions = (
                await session.execute(
                    select(func.count()).select_from(GraphEdge).where(GraphEdge.relation == "mentions")
                )
            ).scalar_one()
            entities = (await session.execute(select(func.count()).select_from(GraphNode))).scalar_one()
        assert mentions == 0
        # entity nodes can be shared with other documents and stay
        assert entities == 4

    @pytest.mark.asyncio
    async def test_delete_unknown_raises(self, catalog) -> None:
        with pytest.raises(DocumentNotFoundError):
            await catalog.delete("missing")
