"""Pydantic request/response schemas for the docrag HTTP API.

Request schemas end with ``Request``, response schemas with ``Response``.
Query results reuse the domain models (:class:`SearchResponse`,
:class:`FullTextResponse`, :class:`StorageInfo`) directly so the API and
the agent tools return the same shapes.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from docrag.models.document import DocumentSummary, PageRange
from docrag.models.pipeline import IngestionResult


class IndexUrlRequest(BaseModel):
    """Index a PDF fetched from a URL."""

    url: str = Field(..., min_length=1)
    document_id: str | None = None
    title: str | None = None
    chunk_tokens: int | None = Field(default=None, ge=1)
    page_start: int | None = Field(default=None, ge=1)
    page_end: int | None = Field(default=None, ge=1)
    process_images: bool = False


class IndexResponse(BaseModel):
    """Returned by both index endpoints."""

    document_id: str
    reused_existing: bool
    pages_processed: int
    chunks_created: int
    degraded_chunks: int
    ingestion_time: float

    @classmethod
    def from_result(cls, result: IngestionResult) -> IndexResponse:
        return cls(**result.model_dump())


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000)
    top_k: int | None = Field(default=None, ge=1)


class DocumentListResponse(BaseModel):
    documents: list[DocumentSummary]
    total: int


class LoadResponse(BaseModel):
    document_id: str
    loaded: bool = True


class DeleteResponse(BaseModel):
    document_id: str
    deleted: bool = True


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, str]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


def page_range_from(start: int | None, end: int | None) -> PageRange | None:
    """Build a :class:`PageRange` from optional bounds; both or neither must be set."""
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise ValueError("page_start and page_end must be given together")
    return PageRange(start=start, end=end)
