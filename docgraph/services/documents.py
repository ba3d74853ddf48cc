from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..errors import DocumentNotFoundError, RelationalStoreError
from ..models import Document, STATUS_ERROR, STATUS_INDEXED, STATUS_PROCESSING
from ..schemas import DocumentSummary

# Keys the pipeline writes into Document.meta; stripped on re-ingestion
ERROR_KEY = "error"
ERROR_STAGE_KEY = "error_stage"
GRAPH_ERROR_KEY = "graph_error"
_PIPELINE_KEYS = (ERROR_KEY, ERROR_STAGE_KEY, GRAPH_ERROR_KEY)


def to_summary(doc: Document) -> DocumentSummary:
    return DocumentSummary(
        id=doc.id,
        user_id=doc.user_id,
        title=doc.title,
        content_preview=doc.content_preview,
        storage_key=doc.storage_key,
        metadata=dict(doc.meta or {}),
        status=doc.status,
        chunk_count=doc.chunk_count,
        created_at=doc.created_at,
        uploaded_at=doc.uploaded_at,
    )


class DocumentRepository:
    """Document metadata rows. Full content is never stored here."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def _update(self, document_id: str, **changes) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    doc = await session.get(Document, document_id)
                    if doc is None:
                        raise DocumentNotFoundError(document_id)
                    meta_changes = changes.pop("meta_changes", None)
                    for field, value in changes.items():
                        setattr(doc, field, value)
                    if meta_changes is not None:
                        meta = dict(doc.meta or {})
                        meta.update(meta_changes)
                        # Reassign so the JSON column is flagged dirty
                        doc.meta = meta
        except SQLAlchemyError as e:
            raise RelationalStoreError(
                "Failed to update document", {"document_id": document_id, "error": str(e)}
            ) from e

    async def start_processing(
        self,
        document_id: str,
        user_id: str,
        title: str,
        content_preview: str,
        storage_key: Optional[str],
        metadata: Dict[str, Any],
    ) -> None:
        """Create the row, or reset it when the document is ingested again."""
        now = datetime.now(timezone.utc)
        meta = {k: v for k, v in (metadata or {}).items() if k not in _PIPELINE_KEYS}
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    doc = await session.get(Document, document_id)
                    if doc is None:
                        doc = Document(id=document_id, created_at=now)
                        session.add(doc)
                    doc.user_id = user_id
                    doc.title = title
                    doc.content_preview = content_preview
                    doc.storage_key = storage_key
                    doc.meta = meta
                    doc.status = STATUS_PROCESSING
                    doc.chunk_count = 0
                    doc.uploaded_at = now
        except (SQLAlchemyError, UnicodeEncodeError) as e:
            raise RelationalStoreError(
                "Failed to write document metadata", {"document_id": document_id, "error": str(e)}
            ) from e

    async def set_chunk_count(self, document_id: str, chunk_count: int) -> None:
        await self._update(document_id, chunk_count=chunk_count)

    async def mark_indexed(self, document_id: str, chunk_count: int, graph_error: Optional[str] = None) -> None:
        changes: Dict[str, Any] = {"status": STATUS_INDEXED, "chunk_count": chunk_count}
        if graph_error:
            changes["meta_changes"] = {GRAPH_ERROR_KEY: graph_error}
        await self._update(document_id, **changes)

    async def mark_error(self, document_id: str, reason: str, stage: str) -> None:
        await self._update(
            document_id,
            status=STATUS_ERROR,
            meta_changes={ERROR_KEY: reason, ERROR_STAGE_KEY: stage},
        )

    async def get(self, document_id: str) -> Optional[Document]:
        try:
            async with self._session_factory() as session:
                return await session.get(Document, document_id)
        except SQLAlchemyError as e:
            raise RelationalStoreError(
                "Failed to read document", {"document_id": document_id, "error": str(e)}
            ) from e

    async def list_for_user(self, user_id: str, limit: int = 100) -> List[Document]:
        try:
            async with self._session_factory() as session:
                res = await session.execute(
                    select(Document)
                    .where(Document.user_id == user_id)
                    .order_by(Document.uploaded_at.desc())
                    .limit(limit)
                )
                return list(res.scalars().all())
        except SQLAlchemyError as e:
            raise RelationalStoreError("Failed to list documents", {"user_id": user_id, "error": str(e)}) from e

    async def delete(self, document_id: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    doc = await session.get(Document, document_id)
                    if doc is None:
                        raise DocumentNotFoundError(document_id)
                    await session.delete(doc)
        except SQLAlchemyError as e:
            raise RelationalStoreError(
                "Failed to delete document", {"document_id": document_id, "error": str(e)}
            ) from e
