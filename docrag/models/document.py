"""Document data models for the docrag retrieval store.

Defines Pydantic v2 models for document metadata, page records, chunk
records, query responses, and storage diagnostics.  Persisted models use
frozen config so a stored record is never mutated in place; re-ingestion
replaces the whole set.

Storage layout overview:
    Each document owns exactly one copy of its extracted text (the
    *canonical text*).  Chunks never carry their own text at rest -- a
    :class:`ChunkRecord` is an offset pair ``[text_start, text_end)`` into
    the canonical text plus its embedding.  The store slices the canonical
    text when it hands chunks back (:class:`StoredChunk`).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ContentType(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Keys of the per-document content partition."""

    FULL_TEXT = "full_text"
    PAGES = "pages"


# ---------------------------------------------------------------------------
# Document sources -- resolved once at the ingestion entry point.
# ---------------------------------------------------------------------------
class BytesSource(BaseModel):
    """In-memory document bytes, e.g. an HTTP upload."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["bytes"] = "bytes"
    data: bytes
    filename: str | None = None


class FileSource(BaseModel):
    """A document on the local filesystem."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["file"] = "file"
    path: Path


class UrlSource(BaseModel):
    """A document fetched over HTTP(S)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["url"] = "url"
    url: str


DocumentSource = Annotated[
    Union[BytesSource, FileSource, UrlSource],
    Field(discriminator="kind"),
]


class PageRange(BaseModel):
    """Inclusive, 1-based page range."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int

    @property
    def page_count(self) -> int:
        return self.end - self.start + 1


# ---------------------------------------------------------------------------
# Page records
# ---------------------------------------------------------------------------
class PageImage(BaseModel):
    """Textual description of a rendered page image."""

    model_config = ConfigDict(frozen=True)

    description: str
    type: str = "page-render"
    detail: str = "low"


class PageRecord(BaseModel):
    """Extracted text of one page, with optional image descriptions."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str
    images: list[PageImage] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------
class DocumentMetadata(BaseModel):
    """One record per ingested document.

    Written last during ingestion, so its presence means the content and
    chunk partitions are complete.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    page_count: int = Field(ge=0, description="Total pages in the source document.")
    pages_processed: int = Field(ge=0, description="Pages actually extracted and indexed.")
    page_range: PageRange | None = None
    chunk_count: int = Field(default=0, ge=0)
    degraded_chunk_count: int = Field(
        default=0, ge=0, description="Chunks stored without an embedding."
    )
    chunk_token_budget: int = Field(ge=1)
    embedding_model: str | None = Field(
        default=None, description="Model requested at ingestion; None means the provider default."
    )
    embedding_provider: str = ""
    process_images: bool = False
    estimated_token_count: int = Field(default=0, ge=0)
    processed_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class DocumentSummary(BaseModel):
    """Row returned by ``list_documents``."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    page_count: int
    chunk_count: int
    processed_at: datetime

    @classmethod
    def from_metadata(cls, metadata: DocumentMetadata) -> DocumentSummary:
        return cls(
            id=metadata.id,
            title=metadata.title,
            page_count=metadata.page_count,
            chunk_count=metadata.chunk_count,
            processed_at=metadata.processed_at,
        )


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------
class ChunkRecord(BaseModel):
    """A chunk as persisted: offsets into the canonical text, never the text.

    ``embedding_suffix`` holds only what was appended to the chunk text
    before embedding (page-image descriptions); it is empty for text-only
    documents.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str
    chunk_index: int = Field(ge=0)
    text_start: int = Field(ge=0)
    text_end: int = Field(ge=1)
    embedding: list[float] | None = None
    embedding_suffix: str = ""
    page_references: list[int] = Field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return self.embedding is None


class StoredChunk(ChunkRecord):
    """A chunk read back from the store with its text sliced from the canonical text."""

    text: str

    @property
    def embedding_text(self) -> str:
        if self.embedding_suffix:
            return f"{self.text} {self.embedding_suffix}"
        return self.text


@dataclass(frozen=True)
class LoadedDocument:
    """In-memory cache entry for a document already loaded in this process."""

    metadata: DocumentMetadata
    chunks: list[StoredChunk]
    pages: list[PageRecord]
    full_text: str = ""


# ---------------------------------------------------------------------------
# Query responses -- failures are reported in ``error``, never raised.
# ---------------------------------------------------------------------------
class ImagePreview(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    type: str


class SearchResultItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    similarity: float
    page_references: list[int] = Field(default_factory=list)
    chunk_index: int
    images: list[ImagePreview] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Result of a semantic search against one document."""

    model_config = ConfigDict(frozen=True)

    results: list[SearchResultItem] = Field(default_factory=list)
    total_chunks: int = 0
    query: str = ""
    error: str | None = None

    @classmethod
    def failure(cls, query: str, error: str) -> SearchResponse:
        return cls(query=query, error=error)


class FullTextMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    pages: int
    chunks: int
    estimated_tokens: int
    processed_at: datetime


class FullTextResponse(BaseModel):
    """Reconstructed full text of one document."""

    model_config = ConfigDict(frozen=True)

    full_text: str = ""
    metadata: FullTextMetadata | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> FullTextResponse:
        return cls(error=error)


# ---------------------------------------------------------------------------
# Storage diagnostics
# ---------------------------------------------------------------------------
_BYTES_PER_MB = 1024 * 1024


class DocumentStorage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    chunks: int
    text_bytes: int
    embedding_bytes: int
    metadata_bytes: int
    processed_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_bytes(self) -> int:
        return self.text_bytes + self.embedding_bytes + self.metadata_bytes

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size_mb(self) -> float:
        return self.total_bytes / _BYTES_PER_MB


class StorageInfo(BaseModel):
    """Aggregate store size, for diagnostics only (no eviction is based on it)."""

    model_config = ConfigDict(frozen=True)

    documents: list[DocumentStorage] = Field(default_factory=list)
    unit: str = "MB"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_bytes(self) -> int:
        return sum(doc.total_bytes for doc in self.documents)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_mb(self) -> float:
        return self.total_bytes / _BYTES_PER_MB
