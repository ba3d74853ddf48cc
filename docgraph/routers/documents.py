import uuid
from typing import Optional

from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException, Query
from ..deps import Services, get_services
from ..errors import (
    DocumentNotFoundError,
    IngestionError,
    ObjectStorageError,
    RelationalStoreError,
    TextExtractionError,
    VectorIndexError,
)
from ..schemas import DocumentDetail, DocumentList, IngestResponse
from ..services.extract import extract_text
from .ingest import to_response, failure_response

router = APIRouter(tags=["documents"])

@router.post("/documents/upload", response_model=IngestResponse)
async def upload_document(
    file: UploadFile = File(...),
    user_id: str = Form(...),
    document_id: Optional[str] = Form(None),
    services: Services = Depends(get_services),
):
    if "/" in user_id or (document_id and "/" in document_id):
        raise HTTPException(400, "user_id and document_id must not contain '/'")
    content_bytes = await file.read()
    filename = file.filename or "upload.txt"
    try:
        text = await extract_text(filename, content_bytes)
    except TextExtractionError as e:
        raise HTTPException(400, e.message)
    if not text or len(text.strip()) == 0:
        raise HTTPException(400, "Empty text after extraction")

    try:
        result = await services.ingestion.ingest(
            document_id=document_id or str(uuid.uuid4()),
            title=filename,
            content=text,
            metadata={"filename": filename, "content_type": file.content_type or ""},
            user_id=user_id,
        )
    except IngestionError as e:
        return failure_response(e)
    except RelationalStoreError:
        raise HTTPException(503, "Document store is unavailable. Please try again later.")
    return to_response(result)

@router.get("/documents", response_model=DocumentList)
async def list_documents(
    user_id: str = Query(..., min_length=1),
    limit: int = Query(100, gt=0, le=500),
    services: Services = Depends(get_services),
):
    try:
        docs = await services.catalog.list(user_id, limit=limit)
    except RelationalStoreError as e:
        raise HTTPException(503, e.message)
    return DocumentList(documents=docs)

@router.get("/documents/{document_id}", response_model=DocumentDetail)
async def get_document(
    document_id: str,
    include_content: bool = True,
    services: Services = Depends(get_services),
):
    try:
        return await services.catalog.get(document_id, include_content=include_content)
    except DocumentNotFoundError:
        raise HTTPException(404, "Document not found")
    except ObjectStorageError as e:
        raise HTTPException(502, f"Object storage error: {e.message}")
    except RelationalStoreError as e:
        raise HTTPException(503, e.message)

@router.delete("/documents/{document_id}")
async def delete_document(document_id: str, services: Services = Depends(get_services)):
    try:
        await services.catalog.delete(document_id)
    except DocumentNotFoundError:
        raise HTTPException(404, "Document not found")
    except (ObjectStorageError, VectorIndexError) as e:
        raise HTTPException(502, f"Upstream error: {e.message}")
    except RelationalStoreError as e:
        raise HTTPException(503, e.message)
    return {"deleted": document_id}
