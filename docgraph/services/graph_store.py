"""
Graph persistence and graph read.

Writes are insert-if-absent: a node or edge whose id already exists is left
untouched, so concurrent or repeated ingestions that extract the same entity
converge on one row without locks.
"""

from typing import Any, Dict, List, Sequence, Type

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import GraphPersistError, RelationalStoreError
from ..models import DOCUMENT_NODE_TYPE, GraphEdge, GraphNode
from ..schemas import ExtractedGraph, GraphLinkView, GraphNodeView, GraphResponse
from ..utils.keys import document_node_id, edge_id, mention_edge_id
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

MENTION_LINK_LIMIT = 3
MENTIONS_RELATION = "mentions"
DOCUMENT_NODE_SUMMARY = "Source File"

NODE_READ_LIMIT = 100
EDGE_READ_LIMIT = 150
DOCUMENT_NODE_VAL = 8
ENTITY_NODE_VAL = 5


async def insert_if_absent(session: AsyncSession, model: Type, rows: Sequence[Dict[str, Any]]) -> None:
    """INSERT ... ON CONFLICT DO NOTHING on the primary key `id`.

    Dialects without the clause fall back to an existence check plus insert,
    which is only safe inside the caller's transaction.
    """
    if not rows:
        return
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        insert = None

    if insert is not None:
        stmt = insert(model).values(list(rows)).on_conflict_do_nothing(index_elements=["id"])
        await session.execute(stmt)
        return

    ids = [r["id"] for r in rows]
    res = await session.execute(select(model.id).where(model.id.in_(ids)))
    existing = set(res.scalars().all())
    for r in rows:
        if r["id"] not in existing:
            session.add(model(**r))
            existing.add(r["id"])
    await session.flush()


def build_graph_rows(graph: ExtractedGraph, document_id: str, title: str):
    """Rows for one document's graph batch: (node_rows, edge_rows)."""
    node_rows: List[Dict[str, Any]] = []
    seen_nodes = set()
    for n in graph.nodes:
        if n.id in seen_nodes:
            continue
        seen_nodes.add(n.id)
        node_rows.append({"id": n.id, "label": n.id, "type": n.type, "summary": n.summary})

    edge_rows: List[Dict[str, Any]] = []
    seen_edges = set()

    def _add_edge(eid: str, source: str, target: str, relation: str) -> None:
        if eid in seen_edges:
            return
        seen_edges.add(eid)
        edge_rows.append({"id": eid, "source": source, "target": target, "relation": relation})

    for e in graph.edges:
        _add_edge(edge_id(e.source, e.relation, e.target), e.source, e.target, e.relation)

    doc_node = document_node_id(document_id)
    for row in node_rows[:MENTION_LINK_LIMIT]:
        _add_edge(mention_edge_id(document_id, row["id"]), doc_node, row["id"], MENTIONS_RELATION)

    # The document node is written even when nothing was extracted
    if doc_node not in seen_nodes:
        node_rows.append({
            "id": doc_node,
            "label": title,
            "type": DOCUMENT_NODE_TYPE,
            "summary": DOCUMENT_NODE_SUMMARY,
        })
    return node_rows, edge_rows


class GraphPersister:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def persist(self, graph: ExtractedGraph, document_id: str, title: str) -> int:
        """Commit the whole graph batch in one transaction.

        Returns the number of distinct extracted nodes. Raises GraphPersistError.
        """
        node_rows, edge_rows = build_graph_rows(graph, document_id, title)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await insert_if_absent(session, GraphNode, node_rows)
                    await insert_if_absent(session, GraphEdge, edge_rows)
        except SQLAlchemyError as e:
            raise GraphPersistError(
                "Graph batch failed", document_id=document_id, details={"error": str(e)}
            ) from e

        extracted = len({n.id for n in graph.nodes})
        logger.info(
            "Persisted graph for %s: %d entities, %d edges", document_id, extracted, len(edge_rows)
        )
        return extracted

    async def remove_document(self, document_id: str) -> None:
        """Drop the document node and its mention links. Entity nodes stay."""
        doc_node = document_node_id(document_id)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        delete(GraphEdge).where(
                            GraphEdge.source == doc_node, GraphEdge.relation == MENTIONS_RELATION
                        )
                    )
                    await session.execute(delete(GraphNode).where(GraphNode.id == doc_node))
        except SQLAlchemyError as e:
            raise RelationalStoreError(
                "Failed to remove document graph", {"document_id": document_id, "error": str(e)}
            ) from e


class GraphReader:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def read(self) -> GraphResponse:
        try:
            async with self._session_factory() as session:
                nodes = (await session.execute(
                    select(GraphNode).order_by(GraphNode.id).limit(NODE_READ_LIMIT)
                )).scalars().all()
                edges = (await session.execute(
                    select(GraphEdge).order_by(GraphEdge.id).limit(EDGE_READ_LIMIT)
                )).scalars().all()
        except SQLAlchemyError as e:
            raise RelationalStoreError("Failed to read graph", {"error": str(e)}) from e

        return GraphResponse(
            nodes=[
                GraphNodeView(
                    id=n.id,
                    label=n.label,
                    group=n.type,
                    val=DOCUMENT_NODE_VAL if n.type == DOCUMENT_NODE_TYPE else ENTITY_NODE_VAL,
                )
                for n in nodes
            ],
            links=[GraphLinkView(source=e.source, target=e.target, relation=e.relation) for e in edges],
        )
