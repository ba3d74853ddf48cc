from typing import Dict, List, Tuple

import httpx
from openai import AsyncOpenAI, OpenAIError

from ..config import settings
from ..errors import LLMConfigurationError, LLMServiceError
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"

# Heuristic cost order, cheapest first
CHEAP_CANDIDATES = [
    "sonar",
    "sonar-pro",
]


def _models_to_try(configured: str, cheap_first: bool) -> List[str]:
    configured = (configured or "").strip()
    if cheap_first:
        base = CHEAP_CANDIDATES + ([configured] if configured else [])
    else:
        base = ([configured] if configured else []) + CHEAP_CANDIDATES
    # Preserve order and uniqueness
    seen = set()
    return [m for m in base if m and not (m in seen or seen.add(m))]


class ChatClient:
    """Generative inference collaborator: complete(messages) -> text.

    No guarantee is made about the shape of the returned text.
    """

    def __init__(
        self,
        provider: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        openai_client: AsyncOpenAI | None = None,
        temperature: float = 0.2,
    ):
        self.provider = (provider or settings.LLM_PROVIDER or "perplexity").lower()
        self._http_client = http_client
        self._openai_client = openai_client
        self.temperature = temperature

    async def complete(self, messages: List[Dict[str, str]], max_tokens: int | None = None) -> str:
        if not messages:
            raise ValueError("messages must be a non-empty list")
        if self.provider == "perplexity":
            text, _model = await self._pplx_chat(messages, max_tokens)
        else:
            text, _model = await self._openai_chat(messages, max_tokens)
        return text

    async def _pplx_chat(self, messages: List[Dict[str, str]], max_tokens: int | None) -> Tuple[str, str]:
        if not settings.PERPLEXITY_API_KEY:
            raise LLMConfigurationError(
                "PERPLEXITY_API_KEY is not set. Please configure PERPLEXITY_API_KEY in environment variables."
            )
        headers = {
            "Authorization": f"Bearer {settings.PERPLEXITY_API_KEY}",
            "Content-Type": "application/json",
        }
        models = _models_to_try(settings.PERPLEXITY_MODEL, settings.LLM_PREFER_CHEAPEST)

        client = self._http_client or httpx.AsyncClient(base_url=PERPLEXITY_BASE_URL, timeout=httpx.Timeout(60.0))
        try:
            last_detail = None
            for model in models:
                payload = {"model": model, "messages": messages, "temperature": self.temperature}
                if max_tokens:
                    payload["max_tokens"] = max_tokens
                try:
                    resp = await client.post("/chat/completions", json=payload, headers=headers)
                except httpx.HTTPError as e:
                    raise LLMServiceError(f"Perplexity API unreachable: {e}") from e
                if resp.status_code == 400:
                    # invalid_model: try the next candidate
                    try:
                        detail_json = resp.json()
                    except ValueError:
                        detail_json = {"text": resp.text}
                    err = detail_json.get("error", {}) if isinstance(detail_json, dict) else {}
                    if isinstance(err, dict) and err.get("type") == "invalid_model":
                        last_detail = detail_json
                        continue
                try:
                    resp.raise_for_status()
                except httpx.HTTPStatusError as e:
                    try:
                        last_detail = resp.json()
                    except ValueError:
                        last_detail = {"text": resp.text}
                    raise LLMServiceError(
                        f"Perplexity API error {resp.status_code}: {last_detail}"
                    ) from e
                data = resp.json()
                content = (data.get("choices", [{}])[0].get("message", {}) or {}).get("content", "") or ""
                return content, data.get("model") or model
        finally:
            if self._http_client is None:
                await client.aclose()

        raise LLMServiceError(
            f"Perplexity API invalid_model for all candidates: {models}. Last detail: {last_detail}"
        )

    async def _openai_chat(self, messages: List[Dict[str, str]], max_tokens: int | None) -> Tuple[str, str]:
        if self._openai_client is None:
            if not settings.OPENAI_API_KEY:
                raise LLMConfigurationError("OPENAI_API_KEY is not set.")
            self._openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        kwargs = {"model": settings.OPENAI_MODEL, "messages": messages, "temperature": self.temperature}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        try:
            chat = await self._openai_client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise LLMServiceError(f"OpenAI API error: {e}") from e
        return chat.choices[0].message.content or "", settings.OPENAI_MODEL
