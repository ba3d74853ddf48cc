
from fastapi import APIRouter, Depends, HTTPException
from ..deps import Services, get_services
from ..errors import RelationalStoreError
from ..schemas import GraphResponse

router = APIRouter(tags=["graph"])

@router.get("/graph", response_model=GraphResponse)
async def read_graph(services: Services = Depends(get_services)):
    try:
        return await services.graph.read()
    except RelationalStoreError as e:
        raise HTTPException(status_code=503, detail=f"Graph store unavailable: {e.message}")
