from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import settings
from .db import init_models, dispose_engine
from .routers import chat, documents, graph, ingest, search
from .utils.logging_utils import configure_logging, get_logger

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    if settings.AUTO_CREATE_TABLES:
        await init_models()
    logger.info("docgraph started (vector=%s, storage=%s)", settings.VECTOR_BACKEND, settings.STORAGE_BACKEND)
    yield
    await dispose_engine()

app = FastAPI(title="docgraph", version="0.2.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware,
    allow_origins=[o.strip() for o in settings.ALLOWED_ORIGINS.split(",")],
    allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

@app.get("/health")
async def health(): return {"status": "ok"}

app.include_router(ingest.router,    prefix="/v1")
app.include_router(search.router,    prefix="/v1")
app.include_router(graph.router,     prefix="/v1")
app.include_router(documents.router, prefix="/v1")
app.include_router(chat.router,      prefix="/v1")
