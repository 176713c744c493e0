"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible servers (TogetherAI, Ollama's
``/v1`` endpoint) via a custom ``base_url``.  Timeouts and retries on
429/5xx are delegated to the SDK client (``timeout`` / ``max_retries``).
"""

from __future__ import annotations

import openai
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "nomic-embed-text": 768,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API."""

    def __init__(self, settings: Settings, max_retries: int = 5, timeout: float = 30.0) -> None:
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url

        client_kwargs: dict = {
            # The SDK refuses to build a client without a key; local
            # OpenAI-compatible servers accept any placeholder.
            "api_key": self._api_key or "unused",
            "max_retries": max_retries,
            "timeout": timeout,
        }
        if self._base_url:
            client_kwargs["base_url"] = self._base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1536)
        self._provider_label = (
            "openai-compatible_embedding" if self._base_url else "openai_embedding"
        )

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        """Embed *text* with *model* (default: the configured model)."""
        model_name = model or self._model
        try:
            response = await self._client.embeddings.create(input=[text], model=model_name)
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not response.data:
            raise EmbeddingError(
                message=f"{self._provider_label} returned no embedding",
                provider_name=self.get_provider_name(),
            )

        logger.debug(
            "openai_embedding",
            model=model_name,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return list(response.data[0].embedding)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key or a custom endpoint is configured."""
        return bool(self._api_key or self._base_url)
