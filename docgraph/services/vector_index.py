"""
Vector index clients.

Two backends share one contract:

* ``upsert(records)`` replaces records by id; a call either lands completely
  or not at all, and is safe to retry.
* ``query(vector, top_k)`` returns at most ``top_k`` matches ranked by cosine
  similarity, each with its score and stored metadata. Never mutates.
* ``delete(ids)`` removes records; unknown ids are ignored.

``InMemoryVectorIndex`` keeps vectors in process (local runs and tests).
``HttpVectorIndex`` talks to a Pinecone-style REST index.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

import httpx
import numpy as np

from ..config import settings
from ..errors import VectorIndexError
from ..schemas import VectorMatch, VectorRecord
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


def _check_top_k(top_k: int) -> None:
    if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
        raise ValueError("top_k must be a positive integer")


def _to_vec(raw) -> np.ndarray:
    if raw is None:
        raw = []
    return np.asarray([float(x) for x in raw], dtype=np.float32).reshape(-1)


class VectorIndex(ABC):
    @abstractmethod
    async def upsert(self, records: Sequence[VectorRecord]) -> None: ...

    @abstractmethod
    async def query(self, vector: Sequence[float], top_k: int) -> List[VectorMatch]: ...

    @abstractmethod
    async def delete(self, ids: Sequence[str]) -> None: ...


class InMemoryVectorIndex(VectorIndex):
    def __init__(self, dimension: int | None = None):
        self.dimension = dimension
        self._vectors: Dict[str, np.ndarray] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._vectors)

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        # Validate the whole batch before touching state
        staged = []
        for r in records:
            vec = _to_vec(r.values)
            if vec.size == 0:
                raise VectorIndexError("Empty vector", operation="upsert", details={"id": r.id})
            if self.dimension and vec.size != self.dimension:
                raise VectorIndexError(
                    "Vector dimension mismatch",
                    operation="upsert",
                    details={"id": r.id, "expected": self.dimension, "received": int(vec.size)},
                )
            staged.append((r.id, vec, dict(r.metadata)))
        async with self._lock:
            for rid, vec, meta in staged:
                self._vectors[rid] = vec
                self._metadata[rid] = meta

    async def query(self, vector: Sequence[float], top_k: int) -> List[VectorMatch]:
        _check_top_k(top_k)
        q = _to_vec(vector)
        q_norm = np.linalg.norm(q)
        scored = []
        for rid, e in self._vectors.items():
            if e.size != q.size:
                continue
            score = float(np.dot(q, e) / (q_norm * np.linalg.norm(e) + 1e-8))
            scored.append((score, rid))
        scored.sort(key=lambda x: x[0], reverse=True)
        return [
            VectorMatch(id=rid, score=score, metadata=dict(self._metadata[rid]))
            for score, rid in scored[:top_k]
        ]

    async def delete(self, ids: Sequence[str]) -> None:
        async with self._lock:
            for rid in ids:
                self._vectors.pop(rid, None)
                self._metadata.pop(rid, None)


class HttpVectorIndex(VectorIndex):
    """Pinecone-style REST index: /vectors/upsert, /query, /vectors/delete.

    The index itself is configured for cosine similarity; scores are taken
    as returned.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        namespace: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = (base_url or settings.VECTOR_INDEX_URL).rstrip("/")
        self.namespace = namespace if namespace is not None else settings.VECTOR_NAMESPACE
        api_key = api_key if api_key is not None else settings.VECTOR_INDEX_API_KEY
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Api-Key"] = api_key
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=httpx.Timeout(timeout)
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any], operation: str) -> Dict[str, Any]:
        if self.namespace:
            payload["namespace"] = self.namespace
        try:
            resp = await self._client.post(path, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise VectorIndexError(
                f"Vector index returned {e.response.status_code}",
                operation=operation,
                details={"body": e.response.text[:500]},
            ) from e
        except httpx.HTTPError as e:
            raise VectorIndexError(
                "Vector index unreachable", operation=operation, details={"error": str(e)}
            ) from e
        try:
            return resp.json() if resp.content else {}
        except ValueError as e:
            raise VectorIndexError("Vector index returned invalid JSON", operation=operation) from e

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        vectors = [{"id": r.id, "values": list(r.values), "metadata": r.metadata} for r in records]
        data = await self._post("/vectors/upsert", {"vectors": vectors}, "upsert")
        upserted = data.get("upsertedCount")
        if upserted is not None and upserted != len(vectors):
            raise VectorIndexError(
                "Partial upsert reported by vector index",
                operation="upsert",
                details={"expected": len(vectors), "upserted": upserted},
            )
        logger.debug("Upserted %d vectors", len(vectors))

    async def query(self, vector: Sequence[float], top_k: int) -> List[VectorMatch]:
        _check_top_k(top_k)
        data = await self._post(
            "/query",
            {"vector": list(vector), "topK": top_k, "includeMetadata": True},
            "query",
        )
        matches = data.get("matches")
        if not isinstance(matches, list):
            raise VectorIndexError("Vector index response has no matches list", operation="query")
        try:
            results = [
                VectorMatch(id=str(m["id"]), score=float(m.get("score", 0.0)), metadata=m.get("metadata") or {})
                for m in matches
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise VectorIndexError("Malformed match in vector index response", operation="query") from e
        results.sort(key=lambda m: m.score, reverse=True)
        return results[:top_k]

    async def delete(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        await self._post("/vectors/delete", {"ids": list(ids)}, "delete")


def build_vector_index(backend: str | None = None) -> VectorIndex:
    backend = (backend or settings.VECTOR_BACKEND or "memory").lower()
    if backend == "memory":
        return InMemoryVectorIndex(dimension=settings.EMBED_DIM)
    if backend == "http":
        if not settings.VECTOR_INDEX_URL:
            raise ValueError("VECTOR_INDEX_URL must be set when VECTOR_BACKEND=http")
        return HttpVectorIndex()
    raise ValueError(f"Unknown VECTOR_BACKEND: {backend}")
