"""Utility modules for docrag.

- **errors** -- Domain exception hierarchy rooted at DocRAGError; each
  ingestion stage raises its own subclass so callers can name the cause
  (corrupt file, password-protected, quota, range too large).
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from docrag.utils.errors import (
    AcquisitionError,
    ConfigurationError,
    CorruptDocumentError,
    CorruptionError,
    DocRAGError,
    EmbeddingError,
    ExtractionError,
    NotFoundError,
    PageRangeError,
    PasswordProtectedError,
    StorageError,
    StorageQuotaError,
)
from docrag.utils.logging import configure_logging, document_context, get_logger

__all__ = [
    "AcquisitionError",
    "ConfigurationError",
    "CorruptDocumentError",
    "CorruptionError",
    "DocRAGError",
    "EmbeddingError",
    "ExtractionError",
    "NotFoundError",
    "PageRangeError",
    "PasswordProtectedError",
    "StorageError",
    "StorageQuotaError",
    "configure_logging",
    "document_context",
    "get_logger",
]
