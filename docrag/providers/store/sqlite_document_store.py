"""SQLite-backed persistent document store.

Persists metadata, canonical text, page records and chunk records to a
single SQLite file.  Uses ``aiosqlite`` for async I/O over one shared
connection opened in :meth:`initialize`.  Reads and writes go through a
single lock, so a delete transaction never interleaves with an ingestion
batch or a reader.

Embeddings are stored as little-endian float32 blobs; page references as
JSON arrays.  Chunk text is never stored -- reads slice it from the
``contents`` table's canonical text.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np
import structlog
from pydantic import TypeAdapter

from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import (
    ChunkRecord,
    ContentType,
    DocumentMetadata,
    PageRecord,
    StorageInfo,
    StoredChunk,
)
from docrag.providers.store.accounting import measure_document
from docrag.utils.errors import StorageError, StorageQuotaError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/docrag.db")
_PROVIDER = "sqlite"
_EMBEDDING_DTYPE = np.dtype("<f4")
_PAGES_ADAPTER = TypeAdapter(list[PageRecord])

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id            TEXT PRIMARY KEY,
    metadata_json TEXT NOT NULL,
    processed_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS contents (
    document_id  TEXT NOT NULL,
    content_type TEXT NOT NULL,
    data         TEXT NOT NULL,
    PRIMARY KEY (document_id, content_type)
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    document_id      TEXT    NOT NULL,
    chunk_index      INTEGER NOT NULL,
    text_start       INTEGER NOT NULL,
    text_end         INTEGER NOT NULL,
    embedding        BLOB,
    embedding_suffix TEXT    NOT NULL DEFAULT '',
    page_references  TEXT    NOT NULL DEFAULT '[]',
    PRIMARY KEY (document_id, chunk_index)
);
""",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id);",
]

_UPSERT_METADATA_SQL = """\
INSERT INTO documents (id, metadata_json, processed_at)
VALUES (?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET metadata_json = excluded.metadata_json,
              processed_at  = excluded.processed_at;
"""

_UPSERT_CONTENT_SQL = """\
INSERT INTO contents (document_id, content_type, data)
VALUES (?, ?, ?)
ON CONFLICT(document_id, content_type)
DO UPDATE SET data = excluded.data;
"""

_UPSERT_CHUNK_SQL = """\
INSERT INTO chunks (document_id, chunk_index, text_start, text_end,
                    embedding, embedding_suffix, page_references)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(document_id, chunk_index)
DO UPDATE SET text_start       = excluded.text_start,
              text_end         = excluded.text_end,
              embedding        = excluded.embedding,
              embedding_suffix = excluded.embedding_suffix,
              page_references  = excluded.page_references;
"""

_SELECT_METADATA_SQL = "SELECT metadata_json FROM documents WHERE id = ?;"
_LIST_METADATA_SQL = "SELECT metadata_json FROM documents ORDER BY processed_at DESC;"
_SELECT_CONTENT_SQL = "SELECT data FROM contents WHERE document_id = ? AND content_type = ?;"
_SELECT_CHUNKS_SQL = """\
SELECT document_id, chunk_index, text_start, text_end,
       embedding, embedding_suffix, page_references
FROM chunks
WHERE document_id = ?
ORDER BY chunk_index;
"""

# Metadata goes first, the reverse of the ingestion write order.
_DELETE_SQL = [
    "DELETE FROM documents WHERE id = ?;",
    "DELETE FROM contents WHERE document_id = ?;",
    "DELETE FROM chunks WHERE document_id = ?;",
]


def _encode_embedding(embedding: list[float] | None) -> bytes | None:
    if embedding is None:
        return None
    return np.asarray(embedding, dtype=_EMBEDDING_DTYPE).tobytes()


def _decode_embedding(blob: bytes | None) -> list[float] | None:
    if blob is None:
        return None
    return np.frombuffer(blob, dtype=_EMBEDDING_DTYPE).astype(float).tolist()


def _row_to_chunk(row: aiosqlite.Row) -> ChunkRecord:
    return ChunkRecord(
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        text_start=row["text_start"],
        text_end=row["text_end"],
        embedding=_decode_embedding(row["embedding"]),
        embedding_suffix=row["embedding_suffix"],
        page_references=json.loads(row["page_references"]),
    )


def _translate(exc: aiosqlite.Error, operation: str) -> StorageError:
    """Map a sqlite error onto the docrag storage hierarchy."""
    text = str(exc)
    if "database or disk is full" in text.lower() or "SQLITE_FULL" in text:
        return StorageQuotaError(
            message=f"Storage quota exceeded during {operation}: {text}",
            provider_name=_PROVIDER,
        )
    return StorageError(message=f"{operation} failed: {text}", provider_name=_PROVIDER)


class SQLiteDocumentStore(IDocumentStore):
    """aiosqlite-backed :class:`IDocumentStore`.

    Reads and writes share one connection and one lock, so a reader never
    observes the inside of an open transaction.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the connection and create tables and indices if missing."""
        if self._db is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            db = await aiosqlite.connect(self._db_path)
            db.row_factory = aiosqlite.Row
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            await db.commit()
        except aiosqlite.Error as exc:
            raise _translate(exc, "initialize") from exc
        self._db = db
        logger.info("document_store_initialized", path=self._db_path, store=_PROVIDER)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.initialize()
        assert self._db is not None
        return self._db

    @asynccontextmanager
    async def _write(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Serialized write transaction: commit on success, rollback on error."""
        db = await self._connection()
        async with self._lock:
            try:
                yield db
                await db.commit()
            except aiosqlite.Error as exc:
                await db.rollback()
                logger.error("document_store_write_failed", operation=operation, error=str(exc))
                raise _translate(exc, operation) from exc
            except Exception:
                await db.rollback()
                raise

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Hold the store lock for a group of reads."""
        db = await self._connection()
        async with self._lock:
            try:
                yield db
            except aiosqlite.Error as exc:
                raise _translate(exc, "read") from exc

    @staticmethod
    async def _fetchone(
        db: aiosqlite.Connection, sql: str, params: tuple[Any, ...]
    ) -> aiosqlite.Row | None:
        async with db.execute(sql, params) as cursor:
            return await cursor.fetchone()

    @staticmethod
    async def _fetchall(
        db: aiosqlite.Connection, sql: str, params: tuple[Any, ...] = ()
    ) -> list[aiosqlite.Row]:
        async with db.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def put_metadata(self, metadata: DocumentMetadata) -> None:
        async with self._write("put_metadata") as db:
            await db.execute(
                _UPSERT_METADATA_SQL,
                (metadata.id, metadata.model_dump_json(), metadata.processed_at.isoformat()),
            )

    async def get_metadata(self, document_id: str) -> DocumentMetadata | None:
        async with self._read() as db:
            row = await self._fetchone(db, _SELECT_METADATA_SQL, (document_id,))
        if row is None:
            return None
        return DocumentMetadata.model_validate_json(row["metadata_json"])

    async def list_metadata(self) -> list[DocumentMetadata]:
        async with self._read() as db:
            rows = await self._fetchall(db, _LIST_METADATA_SQL)
        return [DocumentMetadata.model_validate_json(row["metadata_json"]) for row in rows]

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def put_content(self, document_id: str, content_type: ContentType, data: Any) -> None:
        content_type = ContentType(content_type)
        if content_type is ContentType.PAGES:
            serialized = _PAGES_ADAPTER.dump_json(list(data)).decode("utf-8")
        else:
            serialized = str(data)
        async with self._write("put_content") as db:
            await db.execute(_UPSERT_CONTENT_SQL, (document_id, content_type.value, serialized))

    async def get_content(self, document_id: str, content_type: ContentType) -> Any | None:
        content_type = ContentType(content_type)
        async with self._read() as db:
            row = await self._fetchone(db, _SELECT_CONTENT_SQL, (document_id, content_type.value))
        if row is None:
            return None
        if content_type is ContentType.PAGES:
            return _PAGES_ADAPTER.validate_json(row["data"])
        return row["data"]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_params(chunk: ChunkRecord) -> tuple[Any, ...]:
        return (
            chunk.document_id,
            chunk.chunk_index,
            chunk.text_start,
            chunk.text_end,
            _encode_embedding(chunk.embedding),
            chunk.embedding_suffix,
            json.dumps(chunk.page_references),
        )

    async def put_chunk(self, chunk: ChunkRecord) -> None:
        async with self._write("put_chunk") as db:
            await db.execute(_UPSERT_CHUNK_SQL, self._chunk_params(chunk))

    async def put_chunks(self, chunks: list[ChunkRecord]) -> None:
        if not chunks:
            return
        async with self._write("put_chunks") as db:
            await db.executemany(_UPSERT_CHUNK_SQL, [self._chunk_params(c) for c in chunks])

    async def _read_full_text_and_chunks(
        self, db: aiosqlite.Connection, document_id: str
    ) -> tuple[str | None, list[ChunkRecord]]:
        text_row = await self._fetchone(
            db, _SELECT_CONTENT_SQL, (document_id, ContentType.FULL_TEXT.value)
        )
        chunk_rows = await self._fetchall(db, _SELECT_CHUNKS_SQL, (document_id,))
        full_text = None if text_row is None else text_row["data"]
        return full_text, [_row_to_chunk(row) for row in chunk_rows]

    async def get_chunks_for_document(self, document_id: str) -> list[StoredChunk]:
        async with self._read() as db:
            full_text, records = await self._read_full_text_and_chunks(db, document_id)
        if full_text is None:
            return []
        return [
            StoredChunk(**record.model_dump(), text=full_text[record.text_start : record.text_end])
            for record in records
        ]

    # ------------------------------------------------------------------
    # Deletion / accounting
    # ------------------------------------------------------------------

    async def delete_document(self, document_id: str) -> bool:
        removed = 0
        async with self._write("delete_document") as db:
            for sql in _DELETE_SQL:
                cursor = await db.execute(sql, (document_id,))
                removed += max(cursor.rowcount, 0)
                await cursor.close()
        logger.info("document_deleted", document_id=document_id, store=_PROVIDER, rows=removed)
        return removed > 0

    async def get_storage_info(self) -> StorageInfo:
        documents = []
        async with self._read() as db:
            for row in await self._fetchall(db, _LIST_METADATA_SQL):
                metadata = DocumentMetadata.model_validate_json(row["metadata_json"])
                full_text, chunks = await self._read_full_text_and_chunks(db, metadata.id)
                documents.append(measure_document(metadata, full_text, chunks))
        documents.sort(key=lambda doc: doc.total_bytes, reverse=True)
        return StorageInfo(documents=documents)

    def get_provider_name(self) -> str:
        return _PROVIDER
