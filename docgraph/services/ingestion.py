"""
Ingestion orchestrator.

Per request::

    received -> chunking -> embedding -> vector-upserted
             -> (graph-extracting -> graph-persisted | graph-skipped-on-error)
             -> complete

Everything up to ``vector-upserted`` is fatal: the document is marked
``error`` with the reason in its metadata and IngestionError is raised.
The graph path is best-effort and runs concurrently with the vector path
once the document row exists; its failures are logged and recorded, never
propagated. The orchestrator holds no state of its own.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import DocGraphError, EmbeddingServiceError, IngestionError
from ..schemas import IngestionResult, VectorRecord
from ..utils.keys import document_key, object_filename, vector_id
from ..utils.logging_utils import get_logger
from ..utils.text import chunk_text, content_preview

logger = get_logger(__name__)


class IngestionStage(str, Enum):
    RECEIVED = "received"
    STORING = "storing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    UPSERTING = "upserting"
    VECTOR_UPSERTED = "vector-upserted"
    GRAPH_EXTRACTING = "graph-extracting"
    GRAPH_PERSISTED = "graph-persisted"
    GRAPH_SKIPPED = "graph-skipped-on-error"
    COMPLETE = "complete"


def build_vector_records(
    document_id: str,
    title: str,
    chunks: Sequence[str],
    vectors: Sequence[Sequence[float]],
    metadata: Dict[str, Any],
) -> List[VectorRecord]:
    return [
        VectorRecord(
            id=vector_id(document_id, i),
            values=list(vec),
            metadata={
                **metadata,
                "document_id": document_id,
                "title": title,
                "chunk_text": chunk,
                "chunk_index": i,
            },
        )
        for i, (chunk, vec) in enumerate(zip(chunks, vectors))
    ]


class IngestionOrchestrator:
    def __init__(
        self,
        *,
        documents,
        storage,
        embedder,
        vector_index,
        extractor,
        persister,
        concurrent_graph: bool = True,
    ):
        self.documents = documents
        self.storage = storage
        self.embedder = embedder
        self.vector_index = vector_index
        self.extractor = extractor
        self.persister = persister
        self.concurrent_graph = concurrent_graph

    def _stage(self, document_id: str, stage: IngestionStage) -> None:
        logger.info("[%s] %s", document_id, stage.value)

    async def ingest(
        self,
        document_id: str,
        title: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: str = "anonymous",
    ) -> IngestionResult:
        metadata = dict(metadata or {})
        content = content or ""
        self._stage(document_id, IngestionStage.RECEIVED)

        storage_key = document_key(user_id, document_id, object_filename(title))
        # A failure here cannot be recorded on the document; it propagates as is
        await self.documents.start_processing(
            document_id=document_id,
            user_id=user_id,
            title=title,
            content_preview=content_preview(content),
            storage_key=storage_key,
            metadata=metadata,
        )

        try:
            self._stage(document_id, IngestionStage.STORING)
            await self.storage.put(storage_key, content, {
                **{k: str(v) for k, v in metadata.items()},
                "user_id": user_id,
                "document_id": document_id,
                "title": title,
                "uploaded_at": datetime.now(timezone.utc).isoformat(),
            })
        except DocGraphError as e:
            await self._fail(IngestionError(str(e), document_id, IngestionStage.STORING.value))
        except Exception as e:
            await self._fail(IngestionError(str(e), document_id, IngestionStage.STORING.value), cause=e)

        vector_step = self._vector_path(document_id, title, content, metadata)
        if self.concurrent_graph:
            vector_outcome, graph_outcome = await asyncio.gather(
                vector_step,
                self._graph_path(document_id, title, content),
                return_exceptions=True,
            )
        else:
            try:
                vector_outcome = await vector_step
            except Exception as e:
                vector_outcome = e
            graph_outcome = None
            if not isinstance(vector_outcome, BaseException):
                graph_outcome = await self._graph_path(document_id, title, content)

        if isinstance(vector_outcome, BaseException):
            if not isinstance(vector_outcome, Exception):
                raise vector_outcome
            if isinstance(vector_outcome, IngestionError):
                await self._fail(vector_outcome)
            else:
                await self._fail(
                    IngestionError(str(vector_outcome), document_id, "unknown"), cause=vector_outcome
                )

        chunk_count = vector_outcome
        if isinstance(graph_outcome, BaseException) or graph_outcome is None:
            graph_nodes, graph_error = 0, str(graph_outcome) if graph_outcome else None
        else:
            graph_nodes, graph_error = graph_outcome

        await self.documents.mark_indexed(document_id, chunk_count, graph_error=graph_error)
        self._stage(document_id, IngestionStage.COMPLETE)
        return IngestionResult(
            document_id=document_id,
            success=True,
            chunk_count=chunk_count,
            graph_node_count=graph_nodes,
            storage_key=storage_key,
            graph_error=graph_error,
        )

    async def _vector_path(self, document_id: str, title: str, content: str, metadata: Dict[str, Any]) -> int:
        stage = IngestionStage.CHUNKING
        try:
            self._stage(document_id, stage)
            chunks = chunk_text(content)
            await self.documents.set_chunk_count(document_id, len(chunks))

            stage = IngestionStage.EMBEDDING
            self._stage(document_id, stage)
            vectors = await self.embedder.embed(chunks)
            if len(vectors) != len(chunks):
                raise EmbeddingServiceError(
                    "Embedding count does not match chunk count",
                    {"chunks": len(chunks), "vectors": len(vectors)},
                )

            stage = IngestionStage.UPSERTING
            records = build_vector_records(document_id, title, chunks, vectors, metadata)
            await self.vector_index.upsert(records)
        except DocGraphError as e:
            raise IngestionError(str(e), document_id, stage.value) from e

        self._stage(document_id, IngestionStage.VECTOR_UPSERTED)
        return len(chunks)

    async def _graph_path(self, document_id: str, title: str, content: str) -> Tuple[int, Optional[str]]:
        """Best-effort: returns (extracted node count, error or None), never raises."""
        try:
            self._stage(document_id, IngestionStage.GRAPH_EXTRACTING)
            graph = await self.extractor.extract(content)
            count = await self.persister.persist(graph, document_id, title)
        except Exception as e:
            logger.warning("[%s] %s: %s", document_id, IngestionStage.GRAPH_SKIPPED.value, e)
            return 0, str(e)
        self._stage(document_id, IngestionStage.GRAPH_PERSISTED)
        return count, None

    async def _fail(self, error: IngestionError, cause: Optional[BaseException] = None) -> None:
        """Mark the document as error and raise `error`."""
        logger.error("[%s] ingestion failed at %s: %s", error.document_id, error.stage, error.message)
        try:
            await self.documents.mark_error(error.document_id, error.message, error.stage)
        except DocGraphError as e:
            logger.error("[%s] could not record failure: %s", error.document_id, e)
        if cause is not None:
            raise error from cause
        raise error
