from typing import List

import httpx
from openai import AsyncOpenAI, OpenAIError

from ..config import settings
from ..errors import EmbeddingServiceError
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


class EmbeddingClient:
    """Turns text spans into vectors with one batched call.

    Output index i always corresponds to input index i. Anything short of a
    full, well-formed, correctly sized result is an EmbeddingServiceError.
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        dimension: int | None = None,
    ):
        self._client = client
        self.model = model or settings.OPENAI_EMBED_MODEL
        self.dimension = dimension if dimension is not None else settings.EMBED_DIM

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        client = self._get_client()
        try:
            resp = await client.embeddings.create(model=self.model, input=texts)
        except (OpenAIError, httpx.HTTPError) as e:
            raise EmbeddingServiceError(
                "Embedding service request failed",
                {"error": str(e), "input_count": len(texts)},
            ) from e

        data = getattr(resp, "data", None)
        if not isinstance(data, list) or len(data) != len(texts):
            raise EmbeddingServiceError(
                "Embedding service returned a size-mismatched result",
                {"expected": len(texts), "received": len(data) if isinstance(data, list) else None},
            )

        # The API carries an explicit index per item; trust it over list order
        items = sorted(data, key=lambda d: getattr(d, "index", 0))
        vectors: List[List[float]] = []
        for item in items:
            vec = getattr(item, "embedding", None)
            if not isinstance(vec, list) or not vec:
                raise EmbeddingServiceError("Embedding service returned a malformed vector")
            if self.dimension and len(vec) != self.dimension:
                raise EmbeddingServiceError(
                    "Embedding dimension mismatch",
                    {"expected": self.dimension, "received": len(vec)},
                )
            vectors.append([float(x) for x in vec])

        logger.debug("Embedded %d spans with %s", len(vectors), self.model)
        return vectors
