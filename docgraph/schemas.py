
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional

# --- Vector index records ---

class VectorRecord(BaseModel):
    id: str
    values: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)

class VectorMatch(BaseModel):
    id: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)

# --- Extracted graph ---

class ExtractedNode(BaseModel):
    id: str
    type: str = "Concept"
    summary: str = ""

class ExtractedEdge(BaseModel):
    source: str
    target: str
    relation: str

class ExtractedGraph(BaseModel):
    nodes: List[ExtractedNode] = Field(default_factory=list)
    edges: List[ExtractedEdge] = Field(default_factory=list)
    # Why the graph came back empty, when it did because of a failure
    degraded_reason: Optional[str] = Field(default=None, exclude=True)

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges

# --- Ingestion ---

class IngestRequest(BaseModel):
    document_id: str = Field(min_length=1, max_length=256)
    title: str = Field(min_length=1, max_length=512)
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    user_id: str = Field(min_length=1, max_length=128)

    @field_validator("document_id", "user_id")
    @classmethod
    def _no_path_separators(cls, v: str) -> str:
        if "/" in v:
            raise ValueError("must not contain '/'")
        return v

    @field_validator("document_id", "user_id", "title", "content")
    @classmethod
    def _utf8_encodable(cls, v: str) -> str:
        # JSON allows lone surrogate escapes; storage and the database do not
        try:
            v.encode("utf-8")
        except UnicodeEncodeError as e:
            raise ValueError("must be valid UTF-8 text") from e
        return v

class IngestionResult(BaseModel):
    document_id: str
    success: bool
    chunk_count: int
    graph_node_count: int
    storage_key: Optional[str] = None
    graph_error: Optional[str] = None

class IngestResponse(BaseModel):
    success: bool
    document_id: str
    chunk_count: int
    graph_node_count: int
    storage_key: Optional[str] = None

# --- Search ---

class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    top_k: int = Field(default=5, gt=0, le=100)

class SearchResponse(BaseModel):
    results: List[VectorMatch]

# --- Chat over retrieved chunks ---

class ChatSource(BaseModel):
    id: str
    document_id: Optional[str] = None
    document_title: str
    snippet: str
    score: float

class ChatRequest(BaseModel):
    query: str = Field(min_length=1)
    agent_type: Optional[str] = None
    system_prompt: Optional[str] = None  # wins over agent_type
    history_context: Optional[str] = None
    user_goals: Optional[str] = None
    top_k: int = Field(default=5, gt=0, le=100)

class ChatResponse(BaseModel):
    answer: str
    sources: List[ChatSource]

# --- Graph read ---

class GraphNodeView(BaseModel):
    id: str
    label: str
    group: str
    val: int

class GraphLinkView(BaseModel):
    source: str
    target: str
    relation: str

class GraphResponse(BaseModel):
    nodes: List[GraphNodeView]
    links: List[GraphLinkView]

# --- Document catalogue ---

class DocumentSummary(BaseModel):
    id: str
    user_id: str
    title: str
    content_preview: str
    storage_key: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: str
    chunk_count: int
    created_at: datetime
    uploaded_at: datetime

class DocumentDetail(DocumentSummary):
    content: Optional[str] = None

class DocumentList(BaseModel):
    documents: List[DocumentSummary]
