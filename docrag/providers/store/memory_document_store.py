"""In-memory document store.

Keeps the three partitions in process-local dicts.  Nothing survives a
restart; intended for tests, notebooks and short-lived processes.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

import structlog

from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import (
    ChunkRecord,
    ContentType,
    DocumentMetadata,
    StorageInfo,
    StoredChunk,
)
from docrag.providers.store.accounting import measure_document

logger = structlog.get_logger(logger_name=__name__)


class MemoryDocumentStore(IDocumentStore):
    """Dict-backed :class:`IDocumentStore`."""

    def __init__(self) -> None:
        self._metadata: dict[str, DocumentMetadata] = {}
        self._contents: dict[tuple[str, ContentType], Any] = {}
        self._chunks: dict[str, dict[int, ChunkRecord]] = {}
        # One lock per document id serializes writes to that document.
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def put_metadata(self, metadata: DocumentMetadata) -> None:
        async with self._locks[metadata.id]:
            self._metadata[metadata.id] = metadata

    async def get_metadata(self, document_id: str) -> DocumentMetadata | None:
        return self._metadata.get(document_id)

    async def list_metadata(self) -> list[DocumentMetadata]:
        return sorted(self._metadata.values(), key=lambda m: m.processed_at, reverse=True)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def put_content(self, document_id: str, content_type: ContentType, data: Any) -> None:
        async with self._locks[document_id]:
            self._contents[(document_id, ContentType(content_type))] = data

    async def get_content(self, document_id: str, content_type: ContentType) -> Any | None:
        return self._contents.get((document_id, ContentType(content_type)))

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def put_chunk(self, chunk: ChunkRecord) -> None:
        async with self._locks[chunk.document_id]:
            self._chunks.setdefault(chunk.document_id, {})[chunk.chunk_index] = chunk

    async def get_chunks_for_document(self, document_id: str) -> list[StoredChunk]:
        full_text = self._contents.get((document_id, ContentType.FULL_TEXT))
        records = self._chunks.get(document_id, {})
        if full_text is None or not records:
            return []
        return [
            StoredChunk(
                **records[index].model_dump(),
                text=full_text[records[index].text_start : records[index].text_end],
            )
            for index in sorted(records)
        ]

    # ------------------------------------------------------------------
    # Deletion / accounting
    # ------------------------------------------------------------------

    async def delete_document(self, document_id: str) -> bool:
        async with self._locks[document_id]:
            content_keys = [key for key in self._contents if key[0] == document_id]
            found = (
                document_id in self._metadata
                or document_id in self._chunks
                or bool(content_keys)
            )
            self._metadata.pop(document_id, None)
            self._chunks.pop(document_id, None)
            for key in content_keys:
                del self._contents[key]

        # Lock is kept; writers may already be queued on it.
        logger.info("document_deleted", document_id=document_id, store="memory", found=found)
        return found

    async def get_storage_info(self) -> StorageInfo:
        documents = [
            measure_document(
                metadata,
                self._contents.get((metadata.id, ContentType.FULL_TEXT)),
                list(self._chunks.get(metadata.id, {}).values()),
            )
            for metadata in self._metadata.values()
        ]
        documents.sort(key=lambda doc: doc.total_bytes, reverse=True)
        return StorageInfo(documents=documents)

    def get_provider_name(self) -> str:
        return "memory"
