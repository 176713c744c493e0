"""FastAPI routes for the docrag retrieval service.

Route map (all under ``/api/v1``):

    Endpoint                         Method  Description
    -----------------------------------------------------------------
    /documents                       POST    Upload a PDF and index it
    /documents/url                   POST    Fetch a PDF by URL and index it
    /documents                       GET     List indexed documents
    /documents/{id}                  GET     Metadata for one document
    /documents/{id}/load             POST    Load into cache, register tools
    /documents/{id}                  DELETE  Remove a document
    /documents/{id}/search           POST    Semantic search
    /documents/{id}/full-text        GET     Reconstructed full text
    /storage                         GET     Storage estimates
    /health                          GET     Health check + provider names

The retrieval service is resolved from ``app.state`` through ``Depends``
using the ``Annotated`` pattern.  Domain errors raised by the service are
turned into JSON by :class:`~docrag.api.middleware.ErrorHandlingMiddleware`.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile

from docrag.api.schemas import (
    DeleteResponse,
    DocumentListResponse,
    ErrorResponse,
    HealthResponse,
    IndexResponse,
    IndexUrlRequest,
    LoadResponse,
    SearchRequest,
    page_range_from,
)
from docrag.models.document import (
    BytesSource,
    DocumentMetadata,
    FullTextResponse,
    PageRange,
    SearchResponse,
    StorageInfo,
    UrlSource,
)
from docrag.services.ingestion.ingestion_service import IngestOptions
from docrag.services.retrieval_service import DocumentRetrievalService
from docrag.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)

router = APIRouter(prefix="/api/v1", tags=["documents"])

_VERSION = "0.1.0"
_MAX_UPLOAD_SIZE = 50 * 1024 * 1024
_UPLOAD_CHUNK_SIZE = 64 * 1024
_ALLOWED_CONTENT_TYPES = frozenset({"application/pdf", "application/octet-stream"})


def _get_service(request: Request) -> DocumentRetrievalService:
    """Return the retrieval service from application state."""
    return request.app.state.retrieval_service


def _get_providers(request: Request) -> dict[str, str]:
    return getattr(request.app.state, "provider_names", {})


ServiceDep = Annotated[DocumentRetrievalService, Depends(_get_service)]
ProvidersDep = Annotated[dict[str, str], Depends(_get_providers)]


def _page_range(start: int | None, end: int | None) -> PageRange | None:
    try:
        return page_range_from(start, end)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=IndexResponse,
    responses={413: {"model": ErrorResponse}, 415: {"model": ErrorResponse}},
    summary="Upload a PDF and index it",
)
async def upload_document(
    service: ServiceDep,
    file: Annotated[UploadFile, File()],
    document_id: Annotated[str | None, Form()] = None,
    title: Annotated[str | None, Form()] = None,
    chunk_tokens: Annotated[int | None, Form(ge=1)] = None,
    page_start: Annotated[int | None, Form(ge=1)] = None,
    page_end: Annotated[int | None, Form(ge=1)] = None,
    process_images: Annotated[bool, Form()] = False,
) -> IndexResponse:
    content_type = file.content_type or ""
    if content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file type: {content_type}. Upload a PDF.",
        )

    # Read in 64 KB pieces so oversize uploads are rejected early.
    parts: list[bytes] = []
    total_size = 0
    while True:
        part = await file.read(_UPLOAD_CHUNK_SIZE)
        if not part:
            break
        total_size += len(part)
        if total_size > _MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: >{_MAX_UPLOAD_SIZE // (1024 * 1024)} MB.",
            )
        parts.append(part)

    options = IngestOptions(
        document_id=document_id or None,
        title=title or None,
        chunk_tokens=chunk_tokens,
        page_range=_page_range(page_start, page_end),
        process_images=process_images,
    )
    result = await service.ingest(
        BytesSource(data=b"".join(parts), filename=file.filename), options
    )
    return IndexResponse.from_result(result)


@router.post(
    "/documents/url",
    response_model=IndexResponse,
    summary="Fetch a PDF by URL and index it",
)
async def index_url(body: IndexUrlRequest, service: ServiceDep) -> IndexResponse:
    options = IngestOptions(
        document_id=body.document_id,
        title=body.title,
        chunk_tokens=body.chunk_tokens,
        page_range=_page_range(body.page_start, body.page_end),
        process_images=body.process_images,
    )
    result = await service.ingest(UrlSource(url=body.url), options)
    return IndexResponse.from_result(result)


# ---------------------------------------------------------------------------
# Document management
# ---------------------------------------------------------------------------


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(service: ServiceDep) -> DocumentListResponse:
    documents = await service.list_documents()
    return DocumentListResponse(documents=documents, total=len(documents))


@router.get(
    "/documents/{document_id}",
    response_model=DocumentMetadata,
    responses={404: {"model": ErrorResponse}},
)
async def get_document(document_id: str, service: ServiceDep) -> DocumentMetadata:
    metadata = await service.context.store.get_metadata(document_id)
    if metadata is None:
        raise NotFoundError(message=f"Document not found: {document_id}")
    return metadata


@router.post(
    "/documents/{document_id}/load",
    response_model=LoadResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def load_document(document_id: str, service: ServiceDep) -> LoadResponse:
    await service.load(document_id)
    return LoadResponse(document_id=document_id)


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
)
async def delete_document(document_id: str, service: ServiceDep) -> DeleteResponse:
    await service.delete(document_id)
    return DeleteResponse(document_id=document_id)


# ---------------------------------------------------------------------------
# Queries -- failures come back in the ``error`` field with status 200
# ---------------------------------------------------------------------------


@router.post("/documents/{document_id}/search", response_model=SearchResponse)
async def search_document(
    document_id: str, body: SearchRequest, service: ServiceDep
) -> SearchResponse:
    return await service.search(document_id, body.query, body.top_k)


@router.get("/documents/{document_id}/full-text", response_model=FullTextResponse)
async def full_text(
    document_id: str,
    service: ServiceDep,
    include_page_markers: Annotated[bool, Query()] = True,
    include_images: Annotated[bool, Query()] = True,
) -> FullTextResponse:
    return await service.get_full_text(
        document_id,
        include_page_markers=include_page_markers,
        include_images=include_images,
    )


@router.get("/storage", response_model=StorageInfo)
async def storage_info(service: ServiceDep) -> StorageInfo:
    return await service.get_storage_info()


@router.get("/health", response_model=HealthResponse)
async def health(providers: ProvidersDep) -> HealthResponse:
    return HealthResponse(status="healthy", version=_VERSION, providers=providers)
