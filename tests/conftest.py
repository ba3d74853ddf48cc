"""
Shared fixtures: a file-backed SQLite database per test, fake inference
collaborators, and a fully wired orchestrator over local backends.
"""

import hashlib
from types import SimpleNamespace
from typing import List

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import docgraph.models  # noqa: F401  (registers tables)
from docgraph.db import Base
from docgraph.services.documents import DocumentRepository
from docgraph.services.graph_extractor import GraphExtractor
from docgraph.services.graph_store import GraphPersister, GraphReader
from docgraph.services.ingestion import IngestionOrchestrator
from docgraph.services.search import SearchService
from docgraph.services.storage import LocalObjectStorage
from docgraph.services.vector_index import InMemoryVectorIndex

EMBED_DIM = 8

GRAPH_JSON = (
    '{"nodes": ['
    '{"id": "Python", "type": "Technology", "summary": "A language"},'
    '{"id": "Guido van Rossum", "type": "Person", "summary": "Creator"},'
    '{"id": "PSF", "type": "Organization", "summary": "Foundation"},'
    '{"id": "CPython", "type": "Technology", "summary": "Reference interpreter"}'
    '], "edges": ['
    '{"source": "Guido van Rossum", "target": "Python", "relation": "created"},'
    '{"source": "PSF", "target": "Python", "relation": "stewards"}'
    ']}'
)


def fake_vector(text: str) -> List[float]:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [b / 255.0 + 0.01 for b in digest[:EMBED_DIM]]


class FakeEmbedder:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.error:
            raise self.error
        return [fake_vector(t) for t in texts]


class FakeChat:
    def __init__(self, response: str = GRAPH_JSON, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: List[list] = []

    async def complete(self, messages, max_tokens=None) -> str:
        self.calls.append(messages)
        if self.error:
            raise self.error
        return self.response


def fake_openai_embeddings(vectors):
    """Object shaped like AsyncOpenAI for `client.embeddings.create(...)`."""
    data = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]

    async def create(model, input):
        return SimpleNamespace(data=data)

    return SimpleNamespace(embeddings=SimpleNamespace(create=create))


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'docgraph.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def storage(tmp_path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "objects")


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex(dimension=EMBED_DIM)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def documents(session_factory) -> DocumentRepository:
    return DocumentRepository(session_factory)


@pytest.fixture
def persister(session_factory) -> GraphPersister:
    return GraphPersister(session_factory)


@pytest.fixture
def reader(session_factory) -> GraphReader:
    return GraphReader(session_factory)


@pytest.fixture
def orchestrator(documents, storage, embedder, vector_index, chat, persister) -> IngestionOrchestrator:
    # Sequential graph path keeps SQLite writers from overlapping
    return IngestionOrchestrator(
        documents=documents,
        storage=storage,
        embedder=embedder,
        vector_index=vector_index,
        extractor=GraphExtractor(chat),
        persister=persister,
        concurrent_graph=False,
    )


@pytest.fixture
def search_service(embedder, vector_index) -> SearchService:
    return SearchService(embedder, vector_index)
