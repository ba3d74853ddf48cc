"""Embedding client: order, size and dimension checks."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
from openai import APIConnectionError

from conftest import fake_openai_embeddings
from docgraph.errors import EmbeddingServiceError
from docgraph.services.embedding import EmbeddingClient


class TestEmbeddingClient:
    @pytest.mark.asyncio
    async def test_returns_vectors_in_input_order(self) -> None:
        client = EmbeddingClient(
            client=fake_openai_embeddings([[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]]), dimension=2
        )

        vectors = await client.embed(["a", "b", "c"])
        assert vectors == [[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]]

    @pytest.mark.asyncio
    async def test_reorders_by_item_index(self) -> None:
        data = [
            SimpleNamespace(index=1, embedding=[0.0, 1.0]),
            SimpleNamespace(index=0, embedding=[1.0, 0.0]),
        ]
        openai_client = SimpleNamespace(
            embeddings=SimpleNamespace(create=AsyncMock(return_value=SimpleNamespace(data=data)))
        )

        vectors = await EmbeddingClient(client=openai_client, dimension=2).embed(["a", "b"])
        assert vectors == [[1.0, 0.0], [0.0, 1.0]]

    @pytest.mark.asyncio
    async def test_single_batched_call(self) -> None:
        create = AsyncMock(return_value=SimpleNamespace(
            data=[SimpleNamespace(index=i, embedding=[1.0]) for i in range(3)]
        ))
        openai_client = SimpleNamespace(embeddings=SimpleNamespace(create=create))

        await EmbeddingClient(client=openai_client, model="m", dimension=1).embed(["a", "b", "c"])
        create.assert_awaited_once_with(model="m", input=["a", "b", "c"])

    @pytest.mark.asyncio
    async def test_empty_input_skips_call(self) -> None:
        create = AsyncMock()
        openai_client = SimpleNamespace(embeddings=SimpleNamespace(create=create))

        assert await EmbeddingClient(client=openai_client).embed([]) == []
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_count_mismatch_raises(self) -> None:
        client = EmbeddingClient(client=fake_openai_embeddings([[1.0, 0.0]]), dimension=2)
        with pytest.raises(EmbeddingServiceError):
            await client.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self) -> None:
        client = EmbeddingClient(client=fake_openai_embeddings([[1.0, 0.0, 0.0]]), dimension=2)
        with pytest.raises(EmbeddingServiceError):
            await client.embed(["a"])

    @pytest.mark.asyncio
    async def test_connection_failure_raises(self) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        create = AsyncMock(side_effect=APIConnectionError(request=request))
        openai_client = SimpleNamespace(embeddings=SimpleNamespace(create=create))

        with pytest.raises(EmbeddingServiceError):
            await EmbeddingClient(client=openai_client).embed(["a"])
