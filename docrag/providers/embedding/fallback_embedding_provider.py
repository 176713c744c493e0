"""Remote-first embedding with a local fallback.

Every call tries the remote provider; on any failure (timeout, network
error, non-2xx, malformed response) it logs a warning and returns the
deterministic local embedding instead.  :meth:`embed` never raises, which
keeps indexing available in degraded quality while the remote service is
down.
"""

from __future__ import annotations

import structlog

from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.providers.embedding.local_hash_embedding_provider import (
    LocalHashEmbeddingProvider,
)

logger = structlog.get_logger(logger_name=__name__)


class FallbackEmbeddingProvider(IEmbeddingProvider):
    """Chains a remote provider with :class:`LocalHashEmbeddingProvider`.

    Parameters
    ----------
    primary:
        The remote provider, or ``None`` to always use the local embedding.
    fallback:
        The provider used when *primary* is missing or fails.
    """

    def __init__(
        self,
        primary: IEmbeddingProvider | None,
        fallback: IEmbeddingProvider | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback or LocalHashEmbeddingProvider()
        self._last_provider_name = self._fallback.get_provider_name()

    @property
    def last_provider_name(self) -> str:
        """Name of the provider that produced the most recent vector."""
        return self._last_provider_name

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        if self._primary is not None and self._primary.is_available():
            try:
                vector = await self._primary.embed(text, model)
                self._last_provider_name = self._primary.get_provider_name()
                return vector
            except Exception as exc:  # noqa: BLE001 -- any remote failure falls back
                logger.warning(
                    "remote_embedding_failed",
                    provider=self._primary.get_provider_name(),
                    fallback=self._fallback.get_provider_name(),
                    error=str(exc),
                )

        self._last_provider_name = self._fallback.get_provider_name()
        return await self._fallback.embed(text, model)

    def get_dimension(self) -> int:
        if self._primary is not None and self._primary.is_available():
            return self._primary.get_dimension()
        return self._fallback.get_dimension()

    def get_provider_name(self) -> str:
        if self._primary is None:
            return self._fallback.get_provider_name()
        return f"{self._primary.get_provider_name()}+{self._fallback.get_provider_name()}"

    def is_available(self) -> bool:
        return True
