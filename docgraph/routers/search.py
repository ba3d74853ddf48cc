
from fastapi import APIRouter, Depends, HTTPException
from ..deps import Services, get_services
from ..errors import EmbeddingServiceError, VectorIndexError
from ..schemas import SearchRequest, SearchResponse

router = APIRouter(tags=["search"])

@router.post("/search", response_model=SearchResponse)
async def search(req: SearchRequest, services: Services = Depends(get_services)):
    try:
        matches = await services.search.search(req.query, top_k=req.top_k)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmbeddingServiceError as e:
        raise HTTPException(status_code=502, detail=f"Embedding service error: {e.message}")
    except VectorIndexError as e:
        raise HTTPException(status_code=502, detail=f"Vector index error: {e.message}")
    return SearchResponse(results=matches)
