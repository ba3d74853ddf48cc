from typing import List

from ..errors import EmbeddingServiceError
from ..schemas import VectorMatch
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_TOP_K = 5


class SearchService:
    """Embed a query and return ranked chunk matches.

    Match metadata carries document_id, title and chunk_text so results can
    be shown without another content lookup. Errors from the embedding
    client and the vector index propagate unchanged; nothing is retried.
    """

    def __init__(self, embedder, vector_index):
        self.embedder = embedder
        self.vector_index = vector_index

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[VectorMatch]:
        if not query or not query.strip():
            raise ValueError("query must be a non-empty string")
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
            raise ValueError("top_k must be a positive integer")

        vectors = await self.embedder.embed([query])
        if len(vectors) != 1:
            raise EmbeddingServiceError("Expected exactly one query vector", {"received": len(vectors)})

        matches = await self.vector_index.query(vectors[0], top_k)
        matches = sorted(matches, key=lambda m: m.score, reverse=True)
        logger.info("Search returned %d matches (top_k=%d)", len(matches), top_k)
        return matches
