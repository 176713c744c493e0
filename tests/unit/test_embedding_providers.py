"""Unit tests for the embedding providers.

All remote API calls are mocked via ``unittest.mock.patch``; the local
hashing embedding runs for real.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import openai
import pytest

from docrag.config.settings import Settings
from docrag.providers.embedding.fallback_embedding_provider import FallbackEmbeddingProvider
from docrag.providers.embedding.local_hash_embedding_provider import (
    LOCAL_EMBEDDING_DIMENSION,
    LocalHashEmbeddingProvider,
    local_embed,
)
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.services.similarity import cosine_similarity
from docrag.utils.errors import EmbeddingError
from tests.fakes import ScriptedEmbeddingProvider

_PATCH_TARGET = "docrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"


def _remote_settings(**overrides) -> Settings:
    values = {"openai_api_key": "sk-test", "openai_base_url": ""}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _mock_client(vector: list[float] | None = None) -> AsyncMock:
    response = MagicMock()
    response.data = [] if vector is None else [MagicMock(embedding=vector)]
    response.usage = MagicMock(total_tokens=7)
    client = AsyncMock()
    client.embeddings.create = AsyncMock(return_value=response)
    return client


# ======================================================================
# Local hashing embedding
# ======================================================================


class TestLocalEmbedding:
    def test_dimension(self) -> None:
        assert len(local_embed("volcanic ash clouds")) == LOCAL_EMBEDDING_DIMENSION == 384

    def test_deterministic(self) -> None:
        assert local_embed("Basaltic magma rises.") == local_embed("Basaltic magma rises.")

    def test_unit_norm(self) -> None:
        vector = np.asarray(local_embed("Pulsars rotate hundreds of times each second."))
        assert float(np.linalg.norm(vector)) == pytest.approx(1.0)

    def test_empty_text_is_zero_vector(self) -> None:
        vector = local_embed("")
        assert len(vector) == 384
        assert not any(vector)

    def test_case_insensitive_words(self) -> None:
        assert local_embed("Lava Flow") == local_embed("lava flow")

    def test_shared_vocabulary_scores_higher(self) -> None:
        query = local_embed("magma volcano eruption")
        related = local_embed("The volcano erupted and magma poured out during the eruption.")
        unrelated = local_embed("Sourdough bread needs a long proofing time in the kitchen.")

        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)

    @pytest.mark.asyncio
    async def test_provider_wrapper(self) -> None:
        provider = LocalHashEmbeddingProvider()

        assert await provider.embed("hello world") == local_embed("hello world")
        assert provider.get_dimension() == 384
        assert provider.get_provider_name() == "local_hash_embedding"
        assert provider.is_available() is True


# ======================================================================
# OpenAI-compatible provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    def test_available_with_key(self) -> None:
        with patch(_PATCH_TARGET):
            provider = OpenAIEmbeddingProvider(_remote_settings())
        assert provider.is_available() is True
        assert provider.get_provider_name() == "openai_embedding"
        assert provider.get_dimension() == 1536

    def test_unavailable_without_key_or_endpoint(self) -> None:
        with patch(_PATCH_TARGET):
            provider = OpenAIEmbeddingProvider(_remote_settings(openai_api_key=""))
        assert provider.is_available() is False

    def test_custom_endpoint_label_and_dimension(self) -> None:
        settings = _remote_settings(
            openai_api_key="",
            openai_base_url="http://localhost:11434/v1",
            openai_embedding_model="nomic-embed-text",
        )
        with patch(_PATCH_TARGET) as client_cls:
            provider = OpenAIEmbeddingProvider(settings)

        assert provider.is_available() is True
        assert provider.get_provider_name() == "openai-compatible_embedding"
        assert provider.get_dimension() == 768
        assert client_cls.call_args.kwargs["base_url"] == "http://localhost:11434/v1"

    @pytest.mark.asyncio
    async def test_embed_success(self) -> None:
        client = _mock_client([0.25] * 1536)
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(_remote_settings())
            vector = await provider.embed("hello")

        assert vector == [0.25] * 1536
        client.embeddings.create.assert_awaited_once_with(
            input=["hello"], model="text-embedding-3-small"
        )

    @pytest.mark.asyncio
    async def test_embed_with_model_override(self) -> None:
        client = _mock_client([0.5] * 3072)
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(_remote_settings())
            await provider.embed("hello", model="text-embedding-3-large")

        assert client.embeddings.create.call_args.kwargs["model"] == "text-embedding-3-large"

    @pytest.mark.asyncio
    async def test_api_error_raises_embedding_error(self) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="Rate limit", request=MagicMock(), body=None)
        )
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(_remote_settings())
            with pytest.raises(EmbeddingError):
                await provider.embed("test")

    @pytest.mark.asyncio
    async def test_empty_response_raises_embedding_error(self) -> None:
        with patch(_PATCH_TARGET, return_value=_mock_client(None)):
            provider = OpenAIEmbeddingProvider(_remote_settings())
            with pytest.raises(EmbeddingError, match="returned no embedding"):
                await provider.embed("test")


# ======================================================================
# Fallback chain
# ======================================================================


class _UnavailableProvider(ScriptedEmbeddingProvider):
    def is_available(self) -> bool:
        return False


class TestFallbackEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_primary_used_when_it_succeeds(self) -> None:
        primary = ScriptedEmbeddingProvider()
        provider = FallbackEmbeddingProvider(primary)

        await provider.embed("magma chamber")

        assert primary.calls == ["magma chamber"]
        assert provider.last_provider_name == "scripted_embedding"

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_local(self) -> None:
        primary = ScriptedEmbeddingProvider(fail_when=lambda _text: True)
        provider = FallbackEmbeddingProvider(primary)

        vector = await provider.embed("magma chamber")

        assert vector == local_embed("magma chamber")
        assert provider.last_provider_name == "local_hash_embedding"

    @pytest.mark.asyncio
    async def test_unexpected_exception_also_falls_back(self) -> None:
        primary = MagicMock()
        primary.is_available.return_value = True
        primary.get_provider_name.return_value = "flaky"
        primary.embed = AsyncMock(side_effect=TimeoutError("read timed out"))
        provider = FallbackEmbeddingProvider(primary)

        assert await provider.embed("text") == local_embed("text")

    @pytest.mark.asyncio
    async def test_no_primary_uses_local(self) -> None:
        provider = FallbackEmbeddingProvider(None)

        assert await provider.embed("text") == local_embed("text")
        assert provider.get_provider_name() == "local_hash_embedding"
        assert provider.get_dimension() == 384

    @pytest.mark.asyncio
    async def test_unavailable_primary_is_skipped(self) -> None:
        primary = _UnavailableProvider()
        provider = FallbackEmbeddingProvider(primary)

        await provider.embed("text")

        assert primary.calls == []
        assert provider.get_provider_name() == "scripted_embedding+local_hash_embedding"

    def test_always_available(self) -> None:
        assert FallbackEmbeddingProvider(None).is_available() is True
