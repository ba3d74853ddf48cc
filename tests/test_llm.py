"""Chat client: Perplexity model fallback and error wrapping."""

import json

import httpx
import pytest

from docgraph.config import settings
from docgraph.errors import LLMConfigurationError, LLMServiceError
from docgraph.services.llm import ChatClient, _models_to_try


@pytest.fixture
def pplx_key(monkeypatch):
    monkeypatch.setattr(settings, "PERPLEXITY_API_KEY", "test-key")
    monkeypatch.setattr(settings, "PERPLEXITY_MODEL", "custom-model")
    monkeypatch.setattr(settings, "LLM_PREFER_CHEAPEST", False)


def _client(handler) -> ChatClient:
    http = httpx.AsyncClient(base_url="https://api.test", transport=httpx.MockTransport(handler))
    return ChatClient("perplexity", http_client=http)


class TestModelOrder:
    def test_configured_first_when_not_cheap(self) -> None:
        assert _models_to_try("custom", cheap_first=False) == ["custom", "sonar", "sonar-pro"]

    def test_configured_last_when_cheap_and_deduplicated(self) -> None:
        assert _models_to_try("sonar", cheap_first=True) == ["sonar", "sonar-pro"]


class TestChatClient:
    @pytest.mark.asyncio
    async def test_returns_message_content(self, pplx_key) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}], "model": "custom-model"})

        text = await _client(handler).complete([{"role": "user", "content": "x"}], max_tokens=50)

        assert text == "hi"
        assert seen["body"]["model"] == "custom-model"
        assert seen["body"]["max_tokens"] == 50
        assert seen["auth"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_invalid_model_falls_through_to_next(self, pplx_key) -> None:
        models = []

        def handler(request: httpx.Request) -> httpx.Response:
            model = json.loads(request.content)["model"]
            models.append(model)
            if model == "custom-model":
                return httpx.Response(400, json={"error": {"type": "invalid_model"}})
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        assert await _client(handler).complete([{"role": "user", "content": "x"}]) == "ok"
        assert models == ["custom-model", "sonar"]

    @pytest.mark.asyncio
    async def test_http_error_raises_service_error(self, pplx_key) -> None:
        client = _client(lambda r: httpx.Response(500, json={"error": "down"}))
        with pytest.raises(LLMServiceError):
            await client.complete([{"role": "user", "content": "x"}])

    @pytest.mark.asyncio
    async def test_network_error_raises_service_error(self, pplx_key) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timeout", request=request)

        with pytest.raises(LLMServiceError):
            await _client(handler).complete([{"role": "user", "content": "x"}])

    @pytest.mark.asyncio
    async def test_missing_key_is_configuration_error(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "PERPLEXITY_API_KEY", "")
        with pytest.raises(LLMConfigurationError):
            await ChatClient("perplexity").complete([{"role": "user", "content": "x"}])

    @pytest.mark.asyncio
    async def test_empty_messages_rejected(self) -> None:
        with pytest.raises(ValueError):
            await ChatClient("perplexity").complete([])
