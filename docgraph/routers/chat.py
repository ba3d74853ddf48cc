
from fastapi import APIRouter, Depends, HTTPException
from ..deps import Services, get_services
from ..errors import EmbeddingServiceError, LLMConfigurationError, LLMServiceError, VectorIndexError
from ..schemas import ChatRequest, ChatResponse

router = APIRouter(tags=["chat"])

@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, services: Services = Depends(get_services)):
    try:
        answer, sources = await services.chat.answer(
            req.query,
            agent_type=req.agent_type,
            system_prompt=req.system_prompt,
            history_context=req.history_context,
            user_goals=req.user_goals,
            top_k=req.top_k,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (EmbeddingServiceError, VectorIndexError) as e:
        raise HTTPException(status_code=502, detail=f"Retrieval error: {e.message}")
    except LLMConfigurationError:
        raise HTTPException(status_code=502, detail="LLM provider is not configured on the server.")
    except LLMServiceError as e:
        raise HTTPException(status_code=502, detail=f"Upstream LLM error: {e.message}")
    return ChatResponse(answer=answer, sources=sources)
