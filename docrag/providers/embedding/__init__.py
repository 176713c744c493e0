"""Embedding provider implementations.

Three implementations of IEmbeddingProvider:
    1. OpenAIEmbeddingProvider    -- remote OpenAI-compatible endpoint.
    2. LocalHashEmbeddingProvider -- deterministic 384-dim hashing vector.
    3. FallbackEmbeddingProvider  -- tries (1), falls back to (2); the
       provider the ingestion pipeline and search actually use.
"""

from docrag.providers.embedding.fallback_embedding_provider import FallbackEmbeddingProvider
from docrag.providers.embedding.local_hash_embedding_provider import (
    LOCAL_EMBEDDING_DIMENSION,
    LOCAL_EMBEDDING_MODEL,
    LocalHashEmbeddingProvider,
    local_embed,
)
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = [
    "LOCAL_EMBEDDING_DIMENSION",
    "LOCAL_EMBEDDING_MODEL",
    "FallbackEmbeddingProvider",
    "LocalHashEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "local_embed",
]
