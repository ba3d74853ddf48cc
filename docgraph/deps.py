"""
Collaborator wiring.

The pipeline classes take their collaborators as constructor arguments;
this module builds the production set once and hands it to routers through
``Depends(get_services)``. Tests replace it with
``app.dependency_overrides[get_services]``.
"""

from dataclasses import dataclass

from .db import get_session_local
from .services.catalog import DocumentCatalog
from .services.chat import ChatService
from .services.documents import DocumentRepository
from .services.embedding import EmbeddingClient
from .services.graph_extractor import GraphExtractor
from .services.graph_store import GraphPersister, GraphReader
from .services.ingestion import IngestionOrchestrator
from .services.llm import ChatClient
from .services.search import SearchService
from .services.storage import build_object_storage
from .services.vector_index import build_vector_index


@dataclass
class Services:
    ingestion: IngestionOrchestrator
    search: SearchService
    graph: GraphReader
    catalog: DocumentCatalog
    chat: ChatService


_services: Services | None = None


def build_services() -> Services:
    session_factory = get_session_local()
    documents = DocumentRepository(session_factory)
    storage = build_object_storage()
    embedder = EmbeddingClient()
    vector_index = build_vector_index()
    persister = GraphPersister(session_factory)
    llm = ChatClient()
    search = SearchService(embedder, vector_index)
    return Services(
        ingestion=IngestionOrchestrator(
            documents=documents,
            storage=storage,
            embedder=embedder,
            vector_index=vector_index,
            extractor=GraphExtractor(llm),
            persister=persister,
        ),
        search=search,
        graph=GraphReader(session_factory),
        catalog=DocumentCatalog(
            documents=documents, storage=storage, vector_index=vector_index, persister=persister
        ),
        chat=ChatService(search, llm),
    )


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services
