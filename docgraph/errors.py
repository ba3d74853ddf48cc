"""
Exception hierarchy for the ingestion and retrieval pipeline.

Errors raised at a collaborator boundary (embedding, vector index, object
storage, relational store, LLM) are wrapped into one of these so callers can
decide which failures are fatal and which degrade.
"""

from typing import Any


class DocGraphError(Exception):
    """Base exception for all docgraph errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ChunkingError(DocGraphError):
    """Chunking is a pure function; kept so the taxonomy is complete."""


class EmbeddingServiceError(DocGraphError):
    """Embedding collaborator unreachable or returned a malformed result."""


class VectorIndexError(DocGraphError):
    """Raised when vector index operations fail."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details)


class ObjectStorageError(DocGraphError):
    """Raised when the object storage collaborator fails."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if key:
            details["key"] = key
        super().__init__(message, details)


class RelationalStoreError(DocGraphError):
    """Raised when a relational store statement or batch fails."""


class ExtractionParseError(DocGraphError):
    """LLM output could not be turned into a graph. Recovered inside the extractor."""

    def __init__(
        self,
        message: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.reason = reason
        details = details or {}
        details["reason"] = reason
        super().__init__(message, details)


class GraphPersistError(DocGraphError):
    """Raised when the graph batch cannot be committed."""

    def __init__(
        self,
        message: str,
        document_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if document_id:
            details["document_id"] = document_id
        super().__init__(message, details)


class LLMConfigurationError(DocGraphError):
    """LLM provider is not configured (missing API key etc.)."""


class LLMServiceError(DocGraphError):
    """Error while calling the LLM provider."""


class TextExtractionError(DocGraphError):
    """Uploaded file could not be turned into text."""


class DocumentNotFoundError(DocGraphError):
    """Raised when a document id is unknown to the relational store."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}", {"document_id": document_id})


class IngestionError(DocGraphError):
    """Vector path of an ingestion failed; the document was marked as error."""

    def __init__(
        self,
        message: str,
        document_id: str,
        stage: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.document_id = document_id
        self.stage = stage
        details = details or {}
        details["document_id"] = document_id
        details["stage"] = stage
        super().__init__(message, details)
