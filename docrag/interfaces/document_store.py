"""Abstract base class for document stores.

A store persists three logical partitions per document:

* **metadata** -- one :class:`~docrag.models.document.DocumentMetadata` per id
* **content** -- canonical full text and page records, keyed by
  ``(document_id, content_type)``
* **chunks** -- :class:`~docrag.models.document.ChunkRecord` keyed by
  ``(document_id, chunk_index)`` with a lookup by ``document_id``

Chunk text is never stored; :meth:`IDocumentStore.get_chunks_for_document`
slices it from the canonical text on read.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docrag.models.document import (
    ChunkRecord,
    ContentType,
    DocumentMetadata,
    StorageInfo,
    StoredChunk,
)


# Concrete implementations (docrag/providers/store/):
#   MemoryDocumentStore  -- process-local dicts, nothing survives a restart
#   SQLiteDocumentStore  -- aiosqlite, single-file persistent store
class IDocumentStore(ABC):
    """Contract for document persistence.

    Writes to the same document id are serialized by the implementation so
    chunk offsets always resolve within the currently stored canonical text.
    """

    async def initialize(self) -> None:
        """Prepare the backend (create tables, open files).  Default: no-op."""

    async def close(self) -> None:
        """Release backend resources.  Default: no-op."""

    @abstractmethod
    async def put_metadata(self, metadata: DocumentMetadata) -> None:
        """Insert or replace the metadata record for ``metadata.id``."""

    @abstractmethod
    async def get_metadata(self, document_id: str) -> DocumentMetadata | None:
        """Return the metadata for *document_id*, or ``None``."""

    @abstractmethod
    async def list_metadata(self) -> list[DocumentMetadata]:
        """Return all metadata records, newest first."""

    @abstractmethod
    async def put_content(self, document_id: str, content_type: ContentType, data: Any) -> None:
        """Store a content record (a string for FULL_TEXT, page list for PAGES)."""

    @abstractmethod
    async def get_content(self, document_id: str, content_type: ContentType) -> Any | None:
        """Return a content record, or ``None`` if absent."""

    @abstractmethod
    async def put_chunk(self, chunk: ChunkRecord) -> None:
        """Insert or replace one chunk record."""

    async def put_chunks(self, chunks: list[ChunkRecord]) -> None:
        """Insert a batch of chunk records.  Default: one :meth:`put_chunk` each."""
        for chunk in chunks:
            await self.put_chunk(chunk)

    @abstractmethod
    async def get_chunks_for_document(self, document_id: str) -> list[StoredChunk]:
        """Return all chunks for *document_id* ordered by ``chunk_index``.

        Each chunk's ``text`` is ``canonical_text[text_start:text_end]``.
        Returns an empty list when the document has no chunks or no
        canonical text.
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Remove metadata, content and chunks for *document_id* together.

        Returns ``True`` if anything was removed.  A failure part-way must
        leave the document as it was.

        Raises
        ------
        docrag.utils.errors.StorageError
            If the backend fails.
        """

    @abstractmethod
    async def get_storage_info(self) -> StorageInfo:
        """Return per-document and total storage size estimates."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""
