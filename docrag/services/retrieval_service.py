"""Retrieval facade: index, load, search and read documents.

:class:`DocumentRetrievalService` is the single entry point used by the
HTTP API, the CLI and agent tools.  Every collaborator and the in-memory
cache of loaded documents live on an explicit :class:`DocumentContext`
built once at startup, so two services never share hidden state.

Query-time operations (:meth:`~DocumentRetrievalService.search`,
:meth:`~DocumentRetrievalService.get_full_text`) never raise; failures come
back in the response's ``error`` field because their main caller is a
tool-calling agent that must always receive a well-formed object.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, overload

import structlog

from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.tool_registry import IToolRegistry, ToolDefinition
from docrag.models.document import (
    ContentType,
    DocumentSource,
    DocumentSummary,
    FullTextMetadata,
    FullTextResponse,
    ImagePreview,
    LoadedDocument,
    PageRecord,
    SearchResponse,
    SearchResultItem,
    StorageInfo,
    StoredChunk,
)
from docrag.models.pipeline import IngestionResult
from docrag.services.ingestion.ingestion_service import IngestionService, IngestOptions
from docrag.services.similarity import rank
from docrag.utils.errors import CorruptionError, NotFoundError
from docrag.utils.logging import document_context

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_SEARCH_RESULTS = 4
MAX_SEARCH_RESULTS = 8
SEARCH_PREVIEW_CHARS = 1200
IMAGE_PREVIEW_CHARS = 200
MAX_IMAGES_PER_RESULT = 2

_NOT_FOUND_MESSAGE = "Document not found or has no content"
_TOOL_NAME_RE = re.compile(r"[^a-zA-Z0-9]")


def sanitize_tool_suffix(document_id: str) -> str:
    """Replace every non-alphanumeric character of *document_id* with ``_``."""
    return _TOOL_NAME_RE.sub("_", document_id)


def search_tool_name(document_id: str) -> str:
    return f"search_pdf_{sanitize_tool_suffix(document_id)}"


def full_text_tool_name(document_id: str) -> str:
    return f"get_full_text_{sanitize_tool_suffix(document_id)}"


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


@dataclass
class DocumentContext:
    """Everything the retrieval facade needs, constructed once.

    ``cache`` holds documents loaded in this process, keyed by id.  It is
    the only mutable state outside the store.
    """

    store: IDocumentStore
    ingestion: IngestionService
    embedding_provider: IEmbeddingProvider
    tool_registry: IToolRegistry | None = None
    cache: dict[str, LoadedDocument] = field(default_factory=dict)


class DocumentRetrievalService:
    """Public operations over indexed documents.

    Parameters
    ----------
    context:
        Store, ingestion pipeline, embedding provider, optional tool
        registry and the loaded-document cache.
    default_search_results:
        ``top_k`` used when a search does not specify one.
    max_search_results:
        Upper clamp for ``top_k``.
    preview_chars:
        Search result text is cut to this many characters plus ``"..."``.
    """

    def __init__(
        self,
        context: DocumentContext,
        default_search_results: int = DEFAULT_SEARCH_RESULTS,
        max_search_results: int = MAX_SEARCH_RESULTS,
        preview_chars: int = SEARCH_PREVIEW_CHARS,
    ) -> None:
        self._ctx = context
        self._default_results = default_search_results
        self._max_results = max_search_results
        self._preview_chars = preview_chars

    @property
    def context(self) -> DocumentContext:
        return self._ctx

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        await self._ctx.store.initialize()

    async def close(self) -> None:
        self._ctx.cache.clear()
        await self._ctx.store.close()

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def ingest(
        self, source: DocumentSource, options: IngestOptions | None = None
    ) -> IngestionResult:
        """Run the ingestion pipeline and make the document queryable.

        An id that is already indexed is loaded instead of re-processed.
        """
        outcome = await self._ctx.ingestion.ingest(source, options)
        document_id = outcome.result.document_id
        if outcome.document is None:
            await self.load(document_id)
        else:
            self._ctx.cache[document_id] = outcome.document
            self._register_tools(document_id, outcome.document.metadata.title)
        return outcome.result

    async def index(self, source: DocumentSource, options: IngestOptions | None = None) -> str:
        """Ingest *source* and return the resolved document id."""
        result = await self.ingest(source, options)
        return result.document_id

    @overload
    async def is_indexed(self, document_ids: str) -> bool: ...

    @overload
    async def is_indexed(self, document_ids: list[str]) -> dict[str, bool]: ...

    async def is_indexed(self, document_ids: str | list[str]) -> bool | dict[str, bool]:
        """Report whether metadata exists for one id or for each id in a list."""
        if isinstance(document_ids, str):
            return await self._ctx.store.get_metadata(document_ids) is not None
        return {
            document_id: await self._ctx.store.get_metadata(document_id) is not None
            for document_id in document_ids
        }

    async def list_documents(self) -> list[DocumentSummary]:
        return [DocumentSummary.from_metadata(m) for m in await self._ctx.store.list_metadata()]

    async def load(self, document_id: str) -> str:
        """Load a stored document into the cache and register its tools.

        Raises
        ------
        NotFoundError
            No metadata exists for *document_id*.
        CorruptionError
            Metadata exists but no chunk can be read back.
        """
        document = await self._read_document(document_id)
        self._ctx.cache[document_id] = document
        self._register_tools(document_id, document.metadata.title)
        logger.info("document_loaded", document_id=document_id, chunks=len(document.chunks))
        return document_id

    async def delete(self, document_id: str) -> None:
        """Remove *document_id* from the store and the cache.

        Raises
        ------
        NotFoundError
            Nothing is stored or cached under *document_id*.
        """
        removed = await self._ctx.store.delete_document(document_id)
        cached = self._ctx.cache.pop(document_id, None) is not None
        if not removed and not cached:
            raise NotFoundError(message=f"Document not found: {document_id}")
        self._unregister_tools(document_id)
        logger.info("document_forgotten", document_id=document_id)

    async def get_storage_info(self) -> StorageInfo:
        return await self._ctx.store.get_storage_info()

    # ------------------------------------------------------------------
    # Queries (errors returned as data)
    # ------------------------------------------------------------------

    async def search(
        self, document_id: str, query: str, top_k: int | None = None
    ) -> SearchResponse:
        """Rank every chunk of *document_id* against *query*.

        ``top_k`` is clamped to ``1..max_search_results``.  Chunks without
        an embedding rank last.
        """
        with document_context(document_id, operation="search"):
            try:
                document = await self._get_document(document_id)
                if document is None:
                    return SearchResponse.failure(query, _NOT_FOUND_MESSAGE)

                requested = self._default_results if top_k is None else top_k
                k = max(1, min(requested, self._max_results))
                query_vector = await self._ctx.embedding_provider.embed(
                    query, document.metadata.embedding_model
                )
                ranked = rank(
                    query_vector,
                    [(chunk.embedding, chunk) for chunk in document.chunks],
                    k,
                )
                pages = {page.page_number: page for page in document.pages}
                results = [
                    self._result_item(item.payload, item.similarity, pages) for item in ranked
                ]
            except Exception as exc:  # noqa: BLE001 -- query failures are reported in the response
                logger.error("search_failed", document_id=document_id, error=str(exc))
                return SearchResponse.failure(query, f"Search failed: {exc}")

            logger.info(
                "search_complete",
                document_id=document_id,
                results=len(results),
                top_similarity=round(results[0].similarity, 4) if results else None,
            )
            return SearchResponse(results=results, total_chunks=len(document.chunks), query=query)

    async def get_full_text(
        self,
        document_id: str,
        include_page_markers: bool = True,
        include_images: bool = True,
    ) -> FullTextResponse:
        """Rebuild the document text, optionally with page markers and image notes."""
        try:
            document = await self._get_document(document_id)
            if document is None or not document.full_text:
                return FullTextResponse.failure(_NOT_FOUND_MESSAGE)

            if include_page_markers or include_images:
                text = self._format_pages(document.pages, include_page_markers, include_images)
            else:
                text = document.full_text

            metadata = document.metadata
            return FullTextResponse(
                full_text=text,
                metadata=FullTextMetadata(
                    title=metadata.title,
                    pages=metadata.pages_processed,
                    chunks=metadata.chunk_count,
                    estimated_tokens=metadata.estimated_token_count or math.ceil(len(text) / 4),
                    processed_at=metadata.processed_at,
                ),
            )
        except Exception as exc:  # noqa: BLE001 -- query failures are reported in the response
            logger.error("full_text_failed", document_id=document_id, error=str(exc))
            return FullTextResponse.failure(f"Failed to get full text: {exc}")

    # ------------------------------------------------------------------
    # Tool registration
    # ------------------------------------------------------------------

    def build_tools(self, document_id: str, title: str) -> list[ToolDefinition]:
        """Return the search and full-text tool definitions for one document."""

        async def search_handler(args: dict[str, Any]) -> dict[str, Any]:
            query = args.get("query")
            if not isinstance(query, str) or not query.strip():
                return {"error": "A non-empty 'query' string is required"}
            top_results = args.get("topResults") or self._default_results
            try:
                top_k = int(top_results)
            except (TypeError, ValueError):
                top_k = self._default_results
            response = await self.search(document_id, query, top_k)
            return response.model_dump(mode="json", exclude_none=True)

        async def full_text_handler(args: dict[str, Any]) -> dict[str, Any]:
            response = await self.get_full_text(
                document_id,
                include_page_markers=args.get("includePageNumbers") is not False,
                include_images=args.get("includeImages") is not False,
            )
            return response.model_dump(mode="json", exclude_none=True)

        return [
            ToolDefinition(
                name=search_tool_name(document_id),
                description=(
                    f'Search and retrieve relevant chunks from the PDF "{title}". Returns up to '
                    f"{self._max_results} most relevant chunks (default: {self._default_results}). "
                    "Use this for finding specific information in large PDFs. For comprehensive "
                    "analysis, summaries, or lists, consider using the full text tool instead."
                ),
                handler=search_handler,
                parameters_schema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "The search query to find relevant information in the PDF",
                        },
                        "topResults": {
                            "type": "number",
                            "description": (
                                "Number of most relevant chunks to return "
                                f"(default: {self._default_results}, max: {self._max_results})"
                            ),
                            "default": self._default_results,
                            "maximum": self._max_results,
                        },
                    },
                    "required": ["query"],
                },
            ),
            ToolDefinition(
                name=full_text_tool_name(document_id),
                description=(
                    f'Get the complete full text of the PDF "{title}". Use this for comprehensive '
                    "analysis, summaries, creating lists, or when you need to see the entire "
                    "document. For specific queries or large PDFs, use the search tool instead."
                ),
                handler=full_text_handler,
                parameters_schema={
                    "type": "object",
                    "properties": {
                        "includeImages": {
                            "type": "boolean",
                            "description": (
                                "Whether to include image descriptions in the output (default: true)"
                            ),
                            "default": True,
                        },
                        "includePageNumbers": {
                            "type": "boolean",
                            "description": (
                                "Whether to include page number markers in the text (default: true)"
                            ),
                            "default": True,
                        },
                    },
                    "required": [],
                },
            ),
        ]

    def _register_tools(self, document_id: str, title: str) -> None:
        registry = self._ctx.tool_registry
        if registry is None:
            return
        try:
            for tool in self.build_tools(document_id, title):
                registry.register_tool(tool)
        except Exception as exc:  # noqa: BLE001 -- indexing succeeds even if the agent layer rejects tools
            logger.warning("tool_registration_failed", document_id=document_id, error=str(exc))

    def _unregister_tools(self, document_id: str) -> None:
        registry = self._ctx.tool_registry
        if registry is None:
            return
        for name in (search_tool_name(document_id), full_text_tool_name(document_id)):
            try:
                registry.unregister_tool(name)
            except Exception as exc:  # noqa: BLE001 -- unregistration is best effort
                logger.warning("tool_unregistration_failed", tool=name, error=str(exc))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _read_document(self, document_id: str) -> LoadedDocument:
        store = self._ctx.store
        metadata = await store.get_metadata(document_id)
        if metadata is None:
            raise NotFoundError(message=f"Document not found: {document_id}")

        chunks = await store.get_chunks_for_document(document_id)
        if not chunks:
            if await store.get_metadata(document_id) is None:
                raise NotFoundError(message=f"Document not found: {document_id}")
            raise CorruptionError(
                message=f"Document {document_id} has metadata but no retrievable chunks; "
                "delete it and index it again",
                provider_name=store.get_provider_name(),
            )
        full_text = await store.get_content(document_id, ContentType.FULL_TEXT) or ""
        pages = await store.get_content(document_id, ContentType.PAGES) or []
        return LoadedDocument(metadata=metadata, chunks=chunks, pages=list(pages), full_text=full_text)

    async def _get_document(self, document_id: str) -> LoadedDocument | None:
        """Return the cached document, reading it from the store on a miss."""
        document = self._ctx.cache.get(document_id)
        if document is not None:
            return document
        try:
            document = await self._read_document(document_id)
        except (NotFoundError, CorruptionError):
            return None
        self._ctx.cache[document_id] = document
        return document

    def _result_item(
        self, chunk: StoredChunk, similarity: float, pages: dict[int, PageRecord]
    ) -> SearchResultItem:
        images = [
            image
            for page_number in chunk.page_references
            if page_number in pages
            for image in pages[page_number].images
        ][:MAX_IMAGES_PER_RESULT]
        return SearchResultItem(
            text=_truncate(chunk.text, self._preview_chars),
            similarity=similarity,
            page_references=chunk.page_references,
            chunk_index=chunk.chunk_index,
            images=[
                ImagePreview(
                    description=_truncate(image.description, IMAGE_PREVIEW_CHARS),
                    type=image.type,
                )
                for image in images
            ],
        )

    @staticmethod
    def _format_pages(
        pages: list[PageRecord], include_page_markers: bool, include_images: bool
    ) -> str:
        parts: list[str] = []
        for page in pages:
            if include_page_markers:
                parts.append(f"\n\n--- Page {page.page_number} ---\n")
            parts.append(page.text)
            if include_images and page.images:
                parts.append("\n\n[Images on this page:\n")
                parts.extend(f"- {image.description}\n" for image in page.images)
                parts.append("]\n")
            parts.append("\n\n")
        return "".join(parts).strip()
