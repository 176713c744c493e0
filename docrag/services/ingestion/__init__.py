"""Document ingestion: source loading and the ingestion pipeline."""

from docrag.services.ingestion.ingestion_service import (
    IngestionOutcome,
    IngestionService,
    IngestOptions,
)
from docrag.services.ingestion.source_loader import LoadedSource, SourceLoader, derive_document_id

__all__ = [
    "IngestOptions",
    "IngestionOutcome",
    "IngestionService",
    "LoadedSource",
    "SourceLoader",
    "derive_document_id",
]
