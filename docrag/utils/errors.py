"""Custom exception hierarchy for docrag.

All application exceptions inherit from :class:`DocRAGError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "openai", "pymupdf", "sqlite") caused the failure.

The hierarchy is organized by pipeline stage:

    DocRAGError  (base -- catch-all for any docrag error)
    +-- AcquisitionError          (bad source, fetch failure)
    +-- ExtractionError           (page extraction failed)
    |   +-- PasswordProtectedError
    |   +-- CorruptDocumentError
    +-- PageRangeError            (invalid or over-limit page range)
    +-- StorageError              (document store backend failure)
    |   +-- StorageQuotaError
    +-- NotFoundError             (unknown document id)
    +-- CorruptionError           (metadata without retrievable chunks)
    +-- EmbeddingError            (remote embedding call failed)
    +-- ConfigurationError        (startup / missing config)

Ingestion aborts on everything except :class:`EmbeddingError`, which the
pipeline recovers from per chunk.
"""


class DocRAGError(Exception):
    """Base exception for all docrag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for log
    output, e.g. ``[sqlite] database or disk is full``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class AcquisitionError(DocRAGError):
    """Raised when the document source cannot be read or fetched."""

    def __init__(
        self,
        message: str = "Failed to acquire document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(DocRAGError):
    """Raised when page text cannot be extracted from the document."""

    def __init__(
        self,
        message: str = "Failed to extract document pages",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PasswordProtectedError(ExtractionError):
    """Raised when the document is encrypted and cannot be opened."""

    def __init__(
        self,
        message: str = "Document is password-protected",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CorruptDocumentError(ExtractionError):
    """Raised when the document bytes are not a readable document."""

    def __init__(
        self,
        message: str = "Document is corrupt or not a valid PDF",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PageRangeError(DocRAGError):
    """Raised for an invalid page range or one above the per-call page ceiling.

    Over-limit requests are rejected outright, never truncated.
    """

    def __init__(
        self,
        message: str = "Invalid page range",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class StorageError(DocRAGError):
    """Raised when the document store fails to read or write."""

    def __init__(
        self,
        message: str = "Document store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageQuotaError(StorageError):
    """Raised when the store reports it is out of space."""

    def __init__(
        self,
        message: str = "Storage quota exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(DocRAGError):
    """Raised when no metadata exists for the requested document id."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CorruptionError(DocRAGError):
    """Raised when a document has metadata but no retrievable chunks."""

    def __init__(
        self,
        message: str = "Document has no retrievable chunks",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Provider / configuration errors
# ---------------------------------------------------------------------------

class EmbeddingError(DocRAGError):
    """Raised when a remote embedding call fails.

    :class:`~docrag.providers.embedding.fallback_embedding_provider.FallbackEmbeddingProvider`
    catches this and substitutes the local hashing embedding.
    """

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DocRAGError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
