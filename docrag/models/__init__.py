"""Pydantic data models for documents, chunks, query responses and ingestion state."""

from docrag.models.document import (
    BytesSource,
    ChunkRecord,
    ContentType,
    DocumentMetadata,
    DocumentSource,
    DocumentStorage,
    DocumentSummary,
    FileSource,
    FullTextMetadata,
    FullTextResponse,
    ImagePreview,
    LoadedDocument,
    PageImage,
    PageRange,
    PageRecord,
    SearchResponse,
    SearchResultItem,
    StorageInfo,
    StoredChunk,
    UrlSource,
)
from docrag.models.pipeline import IngestionPhase, IngestionResult

__all__ = [
    "BytesSource",
    "ChunkRecord",
    "ContentType",
    "DocumentMetadata",
    "DocumentSource",
    "DocumentStorage",
    "DocumentSummary",
    "FileSource",
    "FullTextMetadata",
    "FullTextResponse",
    "ImagePreview",
    "IngestionPhase",
    "IngestionResult",
    "LoadedDocument",
    "PageImage",
    "PageRange",
    "PageRecord",
    "SearchResponse",
    "SearchResultItem",
    "StorageInfo",
    "StoredChunk",
    "UrlSource",
]
