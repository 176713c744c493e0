"""Orchestrator for the document ingestion pipeline.

Pipeline phases: **acquire -> extract -> chunk -> embed -> persist**.

The :class:`IngestionService` coordinates its collaborators (source loader,
page extractor, optional page describer, chunker, embedding provider,
document store) without any of them knowing about each other.  All
dependencies are injected via the constructor, so backends can be swapped
(e.g. SQLite -> memory, OpenAI -> local hashing) without touching this
class.

Failure policy:
    * acquisition, extraction, page-range and storage errors abort the
      ingestion and propagate as the matching :class:`DocRAGError`;
    * an embedding failure only degrades its own chunk, which is stored
      with ``embedding=None``;
    * a storage failure part-way through persistence removes whatever was
      already written for the document before re-raising.
"""

from __future__ import annotations

import time
from contextlib import ExitStack
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from docrag.models.document import (
    ChunkRecord,
    ContentType,
    DocumentMetadata,
    DocumentSource,
    LoadedDocument,
    PageImage,
    PageRange,
    PageRecord,
    StoredChunk,
)
from docrag.models.pipeline import (
    PROGRESS_DONE,
    PROGRESS_EMBEDDING_END,
    PROGRESS_LOADED,
    PROGRESS_OFFSETS_END,
    PROGRESS_PAGES_END,
    IngestionPhase,
    IngestionResult,
)
from docrag.pipeline.progress_tracker import ProgressCallback, ProgressReporter
from docrag.services.chunker import TextChunker, TextSpan, estimate_tokens, resolve_offsets
from docrag.services.page_index import PageSpan, build_canonical_text, page_references
from docrag.utils.errors import (
    DocRAGError,
    ExtractionError,
    PageRangeError,
    StorageError,
)
from docrag.utils.logging import document_context

if TYPE_CHECKING:
    from docrag.interfaces.document_store import IDocumentStore
    from docrag.interfaces.embedding_provider import IEmbeddingProvider
    from docrag.interfaces.page_extractor import IPageDescriber, IPageExtractor
    from docrag.services.ingestion.source_loader import SourceLoader

logger = structlog.get_logger(logger_name=__name__)

MAX_PAGES_PER_INGEST = 100
DEFAULT_CHUNK_TOKENS = 400
PERSIST_BATCH_SIZE = 10


@dataclass(frozen=True)
class IngestOptions:
    """Per-call ingestion options.

    ``None`` fields fall back to the service defaults: the id derived from
    the source name, the id as title, the configured chunk budget and the
    embedding provider's own model.
    """

    document_id: str | None = None
    title: str | None = None
    chunk_tokens: int | None = None
    embedding_model: str | None = None
    page_range: PageRange | None = None
    process_images: bool = False
    on_progress: ProgressCallback | None = None


@dataclass(frozen=True)
class IngestionOutcome:
    """What :meth:`IngestionService.ingest` produced.

    ``document`` is ``None`` when the id was already indexed; the caller
    loads the stored record instead.
    """

    result: IngestionResult
    document: LoadedDocument | None = None


class IngestionService:
    """Runs one document through the ingestion state machine.

    Parameters
    ----------
    store:
        Destination for content, chunk and metadata records.
    extractor:
        Turns document bytes into per-page text.
    embedding_provider:
        Produces one vector per chunk.
    source_loader:
        Resolves a :data:`DocumentSource` into bytes and a derived id.
    describer:
        Optional page describer used when ``process_images`` is requested.
    max_pages:
        Hard ceiling on pages processed per call; larger requests are
        rejected, never truncated.
    """

    def __init__(
        self,
        store: IDocumentStore,
        extractor: IPageExtractor,
        embedding_provider: IEmbeddingProvider,
        source_loader: SourceLoader,
        describer: IPageDescriber | None = None,
        max_pages: int = MAX_PAGES_PER_INGEST,
        default_chunk_tokens: int = DEFAULT_CHUNK_TOKENS,
        persist_batch_size: int = PERSIST_BATCH_SIZE,
        heartbeat_seconds: float = 0.0,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._embedding_provider = embedding_provider
        self._source_loader = source_loader
        self._describer = describer
        self._max_pages = max_pages
        self._default_chunk_tokens = default_chunk_tokens
        self._persist_batch_size = max(1, persist_batch_size)
        self._heartbeat_seconds = heartbeat_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self, source: DocumentSource, options: IngestOptions | None = None
    ) -> IngestionOutcome:
        """Ingest *source*, or short-circuit if its id is already stored.

        Raises
        ------
        AcquisitionError
            The source could not be read or fetched.
        ExtractionError
            The document is corrupt, password-protected or has no text.
        PageRangeError
            The page range is invalid or exceeds the per-call ceiling.
        StorageError
            The store failed; nothing partial is left behind.
        """
        with ExitStack() as log_scope:
            options = options or IngestOptions()
            start = time.monotonic()
            reporter = ProgressReporter(options.on_progress)

            try:
                await reporter.enter_phase(IngestionPhase.ACQUIRING)
                loaded = await self._source_loader.load(source)
                document_id = options.document_id or loaded.derived_id
                reporter.bind(document_id)
                log_scope.enter_context(document_context(document_id, operation="ingest"))

                if await self._store.get_metadata(document_id) is not None:
                    logger.info("ingestion_reused_existing", document_id=document_id)
                    await reporter.report(PROGRESS_DONE, "Document already indexed")
                    await reporter.enter_phase(IngestionPhase.READY)
                    return IngestionOutcome(
                        result=IngestionResult(document_id=document_id, reused_existing=True)
                    )
                await reporter.report(PROGRESS_LOADED, "Document loaded")

                await reporter.enter_phase(IngestionPhase.EXTRACTING)
                page_count, page_range, pages = await self._extract(
                    loaded.data, options, reporter
                )

                await reporter.enter_phase(IngestionPhase.CHUNKING)
                chunk_tokens = options.chunk_tokens or self._default_chunk_tokens
                full_text, page_spans = build_canonical_text(pages)
                if not full_text.strip():
                    raise ExtractionError(
                        message=(
                            "No extractable text in the requested pages; the document "
                            "may be scanned images without a text layer"
                        ),
                        provider_name=self._extractor.get_provider_name(),
                    )
                chunker = TextChunker(max_tokens=chunk_tokens)
                offsets = resolve_offsets(full_text, chunker.chunk(full_text))
                await reporter.report(PROGRESS_OFFSETS_END, f"Created {len(offsets)} chunks")

                await reporter.enter_phase(IngestionPhase.EMBEDDING)
                records = await self._embed_chunks(
                    document_id, full_text, offsets, pages, page_spans, options, reporter
                )
                degraded = sum(1 for record in records if record.is_degraded)

                await reporter.enter_phase(IngestionPhase.PERSISTING)
                metadata = DocumentMetadata(
                    id=document_id,
                    title=options.title or document_id,
                    page_count=page_count,
                    pages_processed=len(pages),
                    page_range=page_range,
                    chunk_count=len(records),
                    degraded_chunk_count=degraded,
                    chunk_token_budget=chunk_tokens,
                    embedding_model=options.embedding_model,
                    embedding_provider=self._embedding_provider.get_provider_name(),
                    process_images=options.process_images,
                    estimated_token_count=estimate_tokens(full_text),
                )
                await self._persist(metadata, full_text, pages, records, reporter)

                await reporter.report(PROGRESS_DONE, "Document indexed")
                await reporter.enter_phase(IngestionPhase.READY)
            except DocRAGError as exc:
                await reporter.enter_phase(IngestionPhase.FAILED)
                logger.error(
                    "ingestion_failed",
                    error=exc.message,
                    error_type=type(exc).__name__,
                    provider=exc.provider_name,
                )
                raise

            elapsed = round(time.monotonic() - start, 3)
            logger.info(
                "ingestion_complete",
                document_id=document_id,
                pages=len(pages),
                chunks=len(records),
                degraded_chunks=degraded,
                elapsed_s=elapsed,
            )
            chunks = [
                StoredChunk(
                    **record.model_dump(), text=full_text[record.text_start : record.text_end]
                )
                for record in records
            ]
            return IngestionOutcome(
                result=IngestionResult(
                    document_id=document_id,
                    pages_processed=len(pages),
                    chunks_created=len(records),
                    degraded_chunks=degraded,
                    ingestion_time=elapsed,
                ),
                document=LoadedDocument(
                    metadata=metadata, chunks=chunks, pages=pages, full_text=full_text
                ),
            )

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def validate_page_range(self, page_range: PageRange | None, page_count: int) -> PageRange:
        """Resolve *page_range* against the document and the page ceiling.

        Defaults to the whole document.  Over-limit requests raise rather
        than being truncated.
        """
        if page_count < 1:
            raise ExtractionError(message="Document has no pages")

        if page_range is None:
            page_range = PageRange(start=1, end=page_count)
        elif page_range.start < 1 or page_range.end < page_range.start:
            raise PageRangeError(
                message=f"Invalid page range {page_range.start}-{page_range.end}"
            )
        elif page_range.start > page_count:
            raise PageRangeError(
                message=(
                    f"Page range starts at {page_range.start} but the document "
                    f"has only {page_count} pages"
                )
            )
        else:
            page_range = PageRange(start=page_range.start, end=min(page_range.end, page_count))

        if page_range.page_count > self._max_pages:
            raise PageRangeError(
                message=(
                    f"Requested {page_range.page_count} pages ({page_range.start}-"
                    f"{page_range.end}); at most {self._max_pages} pages can be "
                    "processed per call. Index the document in smaller page ranges."
                )
            )
        return page_range

    async def _extract(
        self,
        data: bytes,
        options: IngestOptions,
        reporter: ProgressReporter,
    ) -> tuple[int, PageRange, list[PageRecord]]:
        provider = self._extractor.get_provider_name()
        try:
            page_count = await self._extractor.page_count(data)
            page_range = self.validate_page_range(options.page_range, page_count)
            contents = await self._extractor.extract_pages(data, page_range)
        except (ExtractionError, PageRangeError):
            raise
        except Exception as exc:
            raise ExtractionError(
                message=f"Failed to extract document pages: {exc}", provider_name=provider
            ) from exc

        describe = options.process_images and self._describer is not None
        if options.process_images and not describe:
            logger.warning("page_describer_unavailable", pages=len(contents))

        pages: list[PageRecord] = []
        for index, content in enumerate(contents):
            images: list[PageImage] = []
            if describe:
                images.append(await self._describe_page(data, content.page_number))
            pages.append(
                PageRecord(page_number=content.page_number, text=content.text, images=images)
            )
            await reporter.report_span(
                PROGRESS_LOADED,
                PROGRESS_PAGES_END,
                index + 1,
                len(contents),
                f"Processed page {content.page_number}",
            )
        return page_count, page_range, pages

    async def _describe_page(self, data: bytes, page_number: int) -> PageImage:
        assert self._describer is not None
        try:
            image = await self._extractor.render_page(data, page_number)
            description = await self._describer.describe_page(image, page_number)
        except Exception as exc:  # noqa: BLE001 -- a failed description degrades to a placeholder
            logger.warning("page_description_failed", page=page_number, error=str(exc))
            description = f"Image from page (analysis failed: {exc})"
        return PageImage(description=description)

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def _embed_chunks(
        self,
        document_id: str,
        full_text: str,
        offsets: list[TextSpan],
        pages: list[PageRecord],
        page_spans: list[PageSpan],
        options: IngestOptions,
        reporter: ProgressReporter,
    ) -> list[ChunkRecord]:
        """Embed chunks one at a time; a failed chunk is kept without a vector."""
        descriptions = {
            page.page_number: " ".join(image.description for image in page.images)
            for page in pages
            if page.images
        }
        records: list[ChunkRecord] = []
        total = len(offsets)

        async with reporter.heartbeat(self._heartbeat_seconds):
            for index, span in enumerate(offsets):
                refs = page_references(page_spans, span.start, span.end)
                suffix = " ".join(descriptions[p] for p in refs if p in descriptions)
                text = full_text[span.start : span.end]
                embedding_text = f"{text} {suffix}" if suffix else text

                embedding: list[float] | None
                try:
                    embedding = await self._embedding_provider.embed(
                        embedding_text, options.embedding_model
                    )
                except Exception as exc:  # noqa: BLE001 -- one failed chunk must not abort the document
                    logger.warning(
                        "chunk_embedding_failed",
                        document_id=document_id,
                        chunk_index=index,
                        error=str(exc),
                    )
                    embedding = None

                records.append(
                    ChunkRecord(
                        document_id=document_id,
                        chunk_index=index,
                        text_start=span.start,
                        text_end=span.end,
                        embedding=embedding,
                        embedding_suffix=suffix,
                        page_references=refs,
                    )
                )
                await reporter.report_span(
                    PROGRESS_OFFSETS_END,
                    PROGRESS_EMBEDDING_END,
                    index + 1,
                    total,
                    f"Embedded chunk {index + 1}/{total}",
                )
        return records

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _persist(
        self,
        metadata: DocumentMetadata,
        full_text: str,
        pages: list[PageRecord],
        records: list[ChunkRecord],
        reporter: ProgressReporter,
    ) -> None:
        """Write content, then chunk batches, then metadata last."""
        document_id = metadata.id
        try:
            await self._store.put_content(document_id, ContentType.FULL_TEXT, full_text)
            await self._store.put_content(document_id, ContentType.PAGES, pages)

            batch = self._persist_batch_size
            for offset in range(0, len(records), batch):
                await self._store.put_chunks(records[offset : offset + batch])
                await reporter.report_span(
                    PROGRESS_EMBEDDING_END,
                    PROGRESS_DONE,
                    min(offset + batch, len(records)),
                    len(records) + 1,
                    "Storing chunks",
                )

            await self._store.put_metadata(metadata)
        except Exception as exc:
            await self._cleanup(metadata)
            if isinstance(exc, StorageError):
                raise
            raise StorageError(
                message=f"Failed to store document: {exc}",
                provider_name=self._store.get_provider_name(),
            ) from exc

    async def _cleanup(self, metadata: DocumentMetadata) -> None:
        """Remove this run's partial writes unless another run has finished the document."""
        document_id = metadata.id
        try:
            existing = await self._store.get_metadata(document_id)
            if existing is not None and existing != metadata:
                logger.warning(
                    "partial_document_cleanup_skipped",
                    document_id=document_id,
                    completed_at=existing.processed_at.isoformat(),
                )
                return
            await self._store.delete_document(document_id)
            logger.info("partial_document_removed", document_id=document_id)
        except Exception as exc:  # noqa: BLE001 -- the first storage error is what surfaces
            logger.error("partial_document_cleanup_failed", document_id=document_id, error=str(exc))
