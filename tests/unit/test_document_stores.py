"""Unit tests for the memory and SQLite document stores.

Every behavioural test runs against both backends through the ``store``
fixture; SQLite tests use a temporary database file per test.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import aiosqlite
import pytest
import pytest_asyncio

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import (
    ChunkRecord,
    ContentType,
    DocumentMetadata,
    PageImage,
    PageRecord,
)
from docrag.providers.store import (
    MemoryDocumentStore,
    SQLiteDocumentStore,
    build_document_store,
)
from docrag.providers.store.sqlite_document_store import _translate
from docrag.utils.errors import ConfigurationError, StorageError, StorageQuotaError

_FULL_TEXT = "Lava cools into basalt.\n\nYeast makes bread rise."
_BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)  # noqa: UP017


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request: pytest.FixtureRequest, tmp_path: Path):
    """An initialized store of each backend, closed after the test."""
    if request.param == "memory":
        backend: IDocumentStore = MemoryDocumentStore()
    else:
        backend = SQLiteDocumentStore(tmp_path / "docs.db")
    await backend.initialize()
    yield backend
    await backend.close()


def _metadata(document_id: str = "doc", minutes: int = 0, **overrides) -> DocumentMetadata:
    values = {
        "id": document_id,
        "title": f"Title of {document_id}",
        "page_count": 2,
        "pages_processed": 2,
        "chunk_count": 2,
        "chunk_token_budget": 400,
        "processed_at": _BASE_TIME + timedelta(minutes=minutes),
    }
    values.update(overrides)
    return DocumentMetadata(**values)


def _chunks(document_id: str = "doc") -> list[ChunkRecord]:
    return [
        ChunkRecord(
            document_id=document_id,
            chunk_index=0,
            text_start=0,
            text_end=23,
            embedding=[0.5, 0.25, -0.125],
            page_references=[1],
        ),
        ChunkRecord(
            document_id=document_id,
            chunk_index=1,
            text_start=25,
            text_end=len(_FULL_TEXT),
            embedding=None,
            embedding_suffix="A photo of a loaf",
            page_references=[2],
        ),
    ]


async def _seed(store: IDocumentStore, document_id: str = "doc", minutes: int = 0) -> None:
    await store.put_content(document_id, ContentType.FULL_TEXT, _FULL_TEXT)
    await store.put_content(
        document_id,
        ContentType.PAGES,
        [
            PageRecord(page_number=1, text="Lava cools into basalt."),
            PageRecord(
                page_number=2,
                text="Yeast makes bread rise.",
                images=[PageImage(description="A photo of a loaf")],
            ),
        ],
    )
    await store.put_chunks(_chunks(document_id))
    await store.put_metadata(_metadata(document_id, minutes))


# ======================================================================
# Shared behaviour
# ======================================================================


class TestMetadata:
    @pytest.mark.asyncio
    async def test_missing_metadata_is_none(self, store: IDocumentStore) -> None:
        assert await store.get_metadata("nope") is None

    @pytest.mark.asyncio
    async def test_round_trip(self, store: IDocumentStore) -> None:
        await store.put_metadata(_metadata(embedding_model="text-embedding-3-small"))

        stored = await store.get_metadata("doc")

        assert stored == _metadata(embedding_model="text-embedding-3-small")

    @pytest.mark.asyncio
    async def test_put_replaces(self, store: IDocumentStore) -> None:
        await store.put_metadata(_metadata(title="Old"))
        await store.put_metadata(_metadata(title="New"))

        stored = await store.get_metadata("doc")
        assert stored is not None
        assert stored.title == "New"

    @pytest.mark.asyncio
    async def test_list_newest_first(self, store: IDocumentStore) -> None:
        await store.put_metadata(_metadata("older", minutes=0))
        await store.put_metadata(_metadata("newer", minutes=5))

        listed = await store.list_metadata()

        assert [m.id for m in listed] == ["newer", "older"]


class TestContentAndChunks:
    @pytest.mark.asyncio
    async def test_pages_round_trip(self, store: IDocumentStore) -> None:
        await _seed(store)

        pages = await store.get_content("doc", ContentType.PAGES)

        assert [page.page_number for page in pages] == [1, 2]
        assert pages[1].images[0].description == "A photo of a loaf"

    @pytest.mark.asyncio
    async def test_chunk_text_is_sliced_from_full_text(self, store: IDocumentStore) -> None:
        await _seed(store)

        chunks = await store.get_chunks_for_document("doc")

        assert [c.chunk_index for c in chunks] == [0, 1]
        assert chunks[0].text == "Lava cools into basalt."
        assert chunks[1].text == "Yeast makes bread rise."
        for chunk in chunks:
            assert chunk.text == _FULL_TEXT[chunk.text_start : chunk.text_end]

    @pytest.mark.asyncio
    async def test_embeddings_and_suffix_survive(self, store: IDocumentStore) -> None:
        await _seed(store)

        first, second = await store.get_chunks_for_document("doc")

        assert first.embedding == pytest.approx([0.5, 0.25, -0.125])
        assert second.embedding is None
        assert second.is_degraded
        assert second.embedding_text == "Yeast makes bread rise. A photo of a loaf"

    @pytest.mark.asyncio
    async def test_no_chunks_without_full_text(self, store: IDocumentStore) -> None:
        await store.put_chunks(_chunks("orphan"))
        assert await store.get_chunks_for_document("orphan") == []

    @pytest.mark.asyncio
    async def test_single_chunk_upsert(self, store: IDocumentStore) -> None:
        await _seed(store)
        await store.put_chunk(
            ChunkRecord(document_id="doc", chunk_index=1, text_start=25, text_end=30)
        )

        chunks = await store.get_chunks_for_document("doc")
        assert chunks[1].text == "Yeast"


class TestDeletion:
    @pytest.mark.asyncio
    async def test_delete_removes_every_partition(self, store: IDocumentStore) -> None:
        await _seed(store)

        assert await store.delete_document("doc") is True

        assert await store.get_metadata("doc") is None
        assert await store.get_content("doc", ContentType.FULL_TEXT) is None
        assert await store.get_content("doc", ContentType.PAGES) is None
        assert await store.get_chunks_for_document("doc") == []

    @pytest.mark.asyncio
    async def test_delete_unknown_returns_false(self, store: IDocumentStore) -> None:
        assert await store.delete_document("ghost") is False

    @pytest.mark.asyncio
    async def test_delete_leaves_other_documents(self, store: IDocumentStore) -> None:
        await _seed(store, "keep")
        await _seed(store, "drop")

        await store.delete_document("drop")

        assert await store.get_metadata("keep") is not None
        assert len(await store.get_chunks_for_document("keep")) == 2

    @pytest.mark.asyncio
    async def test_concurrent_reader_never_sees_metadata_without_chunks(
        self, store: IDocumentStore
    ) -> None:
        document_ids = [f"d{i}" for i in range(10)]
        for document_id in document_ids:
            await _seed(store, document_id)
        torn: list[str] = []

        async def delete_all() -> None:
            for document_id in document_ids:
                await store.delete_document(document_id)

        async def read_all() -> None:
            for _ in range(5):
                for document_id in document_ids:
                    chunks = await store.get_chunks_for_document(document_id)
                    if not chunks and await store.get_metadata(document_id) is not None:
                        torn.append(document_id)

        await asyncio.gather(delete_all(), read_all(), read_all())

        assert torn == []
        assert await store.list_metadata() == []


class TestStorageInfo:
    @pytest.mark.asyncio
    async def test_empty_store(self, store: IDocumentStore) -> None:
        info = await store.get_storage_info()
        assert info.documents == []
        assert info.total_bytes == 0

    @pytest.mark.asyncio
    async def test_sizes(self, store: IDocumentStore) -> None:
        await _seed(store)

        info = await store.get_storage_info()

        (doc,) = info.documents
        assert doc.id == "doc"
        assert doc.chunks == 2
        assert doc.text_bytes == len(_FULL_TEXT.encode("utf-8"))
        assert doc.embedding_bytes == 3 * 4
        assert doc.metadata_bytes > 0
        assert info.total_bytes == doc.total_bytes
        assert info.total_mb == pytest.approx(doc.total_bytes / (1024 * 1024))

    @pytest.mark.asyncio
    async def test_largest_first(self, store: IDocumentStore) -> None:
        await _seed(store, "small")
        await store.put_content("big", ContentType.FULL_TEXT, _FULL_TEXT * 50)
        await store.put_metadata(_metadata("big"))

        info = await store.get_storage_info()

        assert [doc.id for doc in info.documents] == ["big", "small"]


# ======================================================================
# SQLite specifics
# ======================================================================


class TestSQLiteStore:
    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path: Path) -> None:
        db_path = tmp_path / "persist.db"
        first = SQLiteDocumentStore(db_path)
        try:
            await _seed(first)
        finally:
            await first.close()

        second = SQLiteDocumentStore(db_path)
        try:
            chunks = await second.get_chunks_for_document("doc")
            assert [c.text for c in chunks] == ["Lava cools into basalt.", "Yeast makes bread rise."]
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_disk_full_maps_to_quota_error(self, tmp_path: Path) -> None:
        store = SQLiteDocumentStore(tmp_path / "full.db")
        await store.initialize()
        try:
            store._db.execute = AsyncMock(  # type: ignore[union-attr, method-assign]
                side_effect=aiosqlite.OperationalError("database or disk is full")
            )
            with pytest.raises(StorageQuotaError):
                await store.put_metadata(_metadata())
        finally:
            await store.close()

    def test_translate_generic_error(self) -> None:
        error = _translate(aiosqlite.OperationalError("no such table: chunks"), "read")

        assert type(error) is StorageError
        assert error.provider_name == "sqlite"
        assert "no such table" in error.message

    def test_translate_quota_error(self) -> None:
        error = _translate(aiosqlite.OperationalError("database or disk is full"), "put_chunks")
        assert isinstance(error, StorageQuotaError)


class TestBuildDocumentStore:
    def test_memory_backend(self) -> None:
        settings = Settings(_env_file=None, store_backend="memory")
        assert isinstance(build_document_store(settings), MemoryDocumentStore)

    def test_sqlite_backend(self, tmp_path: Path) -> None:
        settings = Settings(
            _env_file=None, store_backend="SQLite", sqlite_db_path=str(tmp_path / "x.db")
        )
        assert isinstance(build_document_store(settings), SQLiteDocumentStore)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError):
            build_document_store(Settings(_env_file=None, store_backend="redis"))


class TestMemoryStoreLocks:
    @pytest.mark.asyncio
    async def test_delete_keeps_document_lock(self) -> None:
        store = MemoryDocumentStore()
        await _seed(store)
        lock = store._locks["doc"]

        await store.delete_document("doc")

        assert store._locks["doc"] is lock

    @pytest.mark.asyncio
    async def test_writers_queued_behind_delete_stay_serialized(self) -> None:
        store = MemoryDocumentStore()
        await _seed(store)
        lock = store._locks["doc"]

        async with lock:
            delete_task = asyncio.create_task(store.delete_document("doc"))
            await asyncio.sleep(0)
            write_task = asyncio.create_task(store.put_metadata(_metadata(title="Again")))
            await asyncio.sleep(0)
            later_write = asyncio.create_task(store.put_content("doc", ContentType.FULL_TEXT, "x"))
            await asyncio.sleep(0)
            assert not delete_task.done()
            assert not write_task.done()
            assert not later_write.done()

        await asyncio.gather(delete_task, write_task, later_write)

        stored = await store.get_metadata("doc")
        assert stored is not None
        assert stored.title == "Again"
        assert await store.get_content("doc", ContentType.FULL_TEXT) == "x"
        assert store._locks["doc"] is lock
