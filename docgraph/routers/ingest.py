
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from ..deps import Services, get_services
from ..errors import IngestionError, RelationalStoreError
from ..schemas import IngestRequest, IngestResponse
from ..utils.logging_utils import get_logger

router = APIRouter(tags=["ingest"])
logger = get_logger(__name__)

def to_response(result) -> IngestResponse:
    return IngestResponse(
        success=result.success,
        document_id=result.document_id,
        chunk_count=result.chunk_count,
        graph_node_count=result.graph_node_count,
        storage_key=result.storage_key,
    )

def failure_response(e: IngestionError) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={"success": False, "document_id": e.document_id, "stage": e.stage, "error": e.message},
    )

@router.post("/ingest", response_model=IngestResponse)
async def ingest(req: IngestRequest, services: Services = Depends(get_services)):
    try:
        result = await services.ingestion.ingest(
            document_id=req.document_id,
            title=req.title,
            content=req.content,
            metadata=req.metadata,
            user_id=req.user_id,
        )
    except IngestionError as e:
        return failure_response(e)
    except RelationalStoreError as e:
        logger.error("Document metadata write failed: %s", e)
        raise HTTPException(status_code=503, detail="Document store is unavailable. Please try again later.")
    return to_response(result)
