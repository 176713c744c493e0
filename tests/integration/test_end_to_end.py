"""End-to-end ingestion and retrieval against both store backends.

Uses the real PyMuPDF extractor on a generated PDF, the local hashing
embedding and either the memory or the SQLite store.  No network.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import ContentType, FileSource, PageRange
from docrag.providers.embedding.fallback_embedding_provider import FallbackEmbeddingProvider
from docrag.providers.extractor.pymupdf_extractor import PyMuPDFPageExtractor
from docrag.providers.store.memory_document_store import MemoryDocumentStore
from docrag.providers.store.sqlite_document_store import SQLiteDocumentStore
from docrag.providers.tools.memory_tool_registry import InMemoryToolRegistry
from docrag.services.ingestion.ingestion_service import IngestOptions
from docrag.utils.errors import NotFoundError
from tests.fakes import SAMPLE_PAGES, build_retrieval_service, make_pdf


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request: pytest.FixtureRequest, tmp_path: Path):
    backend: IDocumentStore
    if request.param == "memory":
        backend = MemoryDocumentStore()
    else:
        backend = SQLiteDocumentStore(tmp_path / "e2e.db")
    await backend.initialize()
    yield backend
    await backend.close()


@pytest.fixture
def pdf_path(tmp_path: Path) -> Path:
    path = tmp_path / "field-notes.pdf"
    path.write_bytes(make_pdf(SAMPLE_PAGES))
    return path


def _words(text: str) -> list[str]:
    return text.split()


@pytest.mark.asyncio
async def test_index_search_read_delete(store: IDocumentStore, pdf_path: Path) -> None:
    registry = InMemoryToolRegistry()
    service = build_retrieval_service(
        store=store,
        extractor=PyMuPDFPageExtractor(),
        embedding_provider=FallbackEmbeddingProvider(None),
        tool_registry=registry,
    )
    progress: list[float] = []

    # -- index --
    result = await service.ingest(
        FileSource(path=pdf_path),
        IngestOptions(chunk_tokens=100, on_progress=lambda p, _m: progress.append(p)),
    )

    assert result.document_id == "field-notes"
    assert result.pages_processed == 3
    assert result.chunks_created >= 3
    assert progress == sorted(progress)
    assert progress[-1] == 1.0

    metadata = await store.get_metadata("field-notes")
    assert metadata is not None
    assert metadata.chunk_count == result.chunks_created
    assert metadata.embedding_provider == "local_hash_embedding"

    # -- stored chunks are offsets into one canonical text --
    full_text = await store.get_content("field-notes", ContentType.FULL_TEXT)
    chunks = await store.get_chunks_for_document("field-notes")
    assert len(chunks) == metadata.chunk_count
    for chunk in chunks:
        assert chunk.text == full_text[chunk.text_start : chunk.text_end]
        assert len(chunk.embedding) == 384
    assert _words(" ".join(chunk.text for chunk in chunks)) == _words(" ".join(SAMPLE_PAGES))

    # -- search --
    response = await service.search(
        "field-notes", "Pyroclastic flows race downhill faster than speeding trains", top_k=1
    )
    assert response.error is None
    assert 2 in response.results[0].page_references

    # -- full text --
    text = await service.get_full_text("field-notes", include_images=False)
    assert text.error is None
    assert "--- Page 3 ---" in text.full_text
    assert "Cinnamon" in text.full_text

    # -- tools --
    tool_payload = await registry.call_tool(
        "search_pdf_field_notes", {"query": "sourdough", "topResults": 1}
    )
    assert 3 in tool_payload["results"][0]["page_references"]

    # -- reload in a fresh service over the same store --
    fresh = build_retrieval_service(store=store, extractor=PyMuPDFPageExtractor())
    assert await fresh.load("field-notes") == "field-notes"
    assert len(fresh.context.cache["field-notes"].chunks) == result.chunks_created

    # -- delete --
    await service.delete("field-notes")
    assert await service.is_indexed("field-notes") is False
    assert registry.list_tools() == []
    with pytest.raises(NotFoundError):
        await service.load("field-notes")

    info = await service.get_storage_info()
    assert info.documents == []


@pytest.mark.asyncio
async def test_page_range_subset(store: IDocumentStore, pdf_path: Path) -> None:
    service = build_retrieval_service(
        store=store,
        extractor=PyMuPDFPageExtractor(),
        embedding_provider=FallbackEmbeddingProvider(None),
    )

    result = await service.ingest(
        FileSource(path=pdf_path), IngestOptions(page_range=PageRange(start=3, end=3))
    )

    assert result.pages_processed == 1
    text = await service.get_full_text("field-notes")
    assert text.full_text.startswith("--- Page 3 ---")
    assert "Pyroclastic" not in text.full_text
    chunks = await store.get_chunks_for_document("field-notes")
    assert all(chunk.page_references == [3] for chunk in chunks)
