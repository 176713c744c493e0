"""Abstract base class for text-embedding providers.

Defines the contract for turning a text string into a fixed-length vector.
Implementations may wrap a remote OpenAI-compatible endpoint or compute a
local hashing embedding.  Vectors from any provider are ranked identically
by :mod:`docrag.services.similarity`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (docrag/providers/embedding/):
#   OpenAIEmbeddingProvider     -- remote, raises EmbeddingError on failure
#   LocalHashEmbeddingProvider  -- deterministic 384-dim, never raises
#   FallbackEmbeddingProvider   -- remote first, local on any failure
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by ingestion and search."""

    @abstractmethod
    async def embed(self, text: str, model: str | None = None) -> list[float]:
        """Generate an embedding vector for *text*.

        Parameters
        ----------
        text:
            The text to embed.
        model:
            Optional model override.  Providers without model choice
            ignore it.

        Returns
        -------
        list[float]
            The embedding vector.

        Raises
        ------
        docrag.utils.errors.EmbeddingError
            If a remote call fails.  Local providers never raise.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the vectors this provider produces."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
