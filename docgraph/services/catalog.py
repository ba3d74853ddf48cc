from typing import List

from ..errors import DocumentNotFoundError
from ..schemas import DocumentDetail, DocumentSummary
from ..utils.keys import vector_id
from ..utils.logging_utils import get_logger
from .documents import to_summary

logger = get_logger(__name__)


class DocumentCatalog:
    """Listing, retrieval and removal across the three stores a document lives in."""

    def __init__(self, *, documents, storage, vector_index, persister):
        self.documents = documents
        self.storage = storage
        self.vector_index = vector_index
        self.persister = persister

    async def list(self, user_id: str, limit: int = 100) -> List[DocumentSummary]:
        docs = await self.documents.list_for_user(user_id, limit=limit)
        return [to_summary(d) for d in docs]

    async def get(self, document_id: str, include_content: bool = True) -> DocumentDetail:
        doc = await self.documents.get(document_id)
        if doc is None:
            raise DocumentNotFoundError(document_id)
        content = None
        if include_content and doc.storage_key:
            content = await self.storage.get(doc.storage_key)
        return DocumentDetail(**to_summary(doc).model_dump(), content=content)

    async def delete(self, document_id: str) -> None:
        doc = await self.documents.get(document_id)
        if doc is None:
            raise DocumentNotFoundError(document_id)
        if doc.storage_key:
            await self.storage.delete(doc.storage_key)
        if doc.chunk_count:
            await self.vector_index.delete([vector_id(document_id, i) for i in range(doc.chunk_count)])
        await self.persister.remove_document(document_id)
        await self.documents.delete(document_id)
        logger.info("Deleted document %s (%d vectors)", document_id, doc.chunk_count)
