"""Ingestion state models.

Every document moves through the phases below in order.  ``FAILED`` is
reachable from any phase; ``READY`` is terminal.

    ACQUIRING -> EXTRACTING -> CHUNKING -> EMBEDDING -> PERSISTING -> READY
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IngestionPhase(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Phases of a single document ingestion."""

    ACQUIRING = "ACQUIRING"    # Reading bytes from the source
    EXTRACTING = "EXTRACTING"  # Page text (and optional image descriptions)
    CHUNKING = "CHUNKING"      # Sentence chunking + offset resolution
    EMBEDDING = "EMBEDDING"    # One embedding call per chunk, sequential
    PERSISTING = "PERSISTING"  # Content, chunk batches, metadata last
    READY = "READY"
    FAILED = "FAILED"


# Progress milestones as fractions of the whole ingestion.
PROGRESS_LOADED = 0.1
PROGRESS_PAGES_END = 0.5
PROGRESS_OFFSETS_END = 0.8
PROGRESS_EMBEDDING_END = 0.95
PROGRESS_DONE = 1.0


class IngestionResult(BaseModel):
    """Summary of one ``index`` call, logged and returned by the CLI."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    reused_existing: bool = Field(
        default=False, description="True when the id was already indexed and only loaded."
    )
    pages_processed: int = Field(default=0, ge=0)
    chunks_created: int = Field(default=0, ge=0)
    degraded_chunks: int = Field(default=0, ge=0)
    ingestion_time: float = Field(default=0.0, ge=0.0)
