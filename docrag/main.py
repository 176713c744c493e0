"""docrag FastAPI application entry point.

Wires together all providers and services via dependency injection.
Loads configuration from the environment / ``.env``, configures
structured logging, and exposes the retrieval service over HTTP.

:func:`build_service` is also used by the CLI to construct the same
component graph outside the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from docrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from docrag.api.routes import router as api_router
from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.page_extractor import IPageDescriber
from docrag.interfaces.tool_registry import IToolRegistry
from docrag.providers.embedding.fallback_embedding_provider import FallbackEmbeddingProvider
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.providers.extractor.pymupdf_extractor import PyMuPDFPageExtractor
from docrag.providers.store import build_document_store
from docrag.providers.tools.memory_tool_registry import InMemoryToolRegistry
from docrag.providers.vision.openai_page_describer import OpenAIPageDescriber
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.services.ingestion.source_loader import SourceLoader
from docrag.services.retrieval_service import DocumentContext, DocumentRetrievalService
from docrag.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Remote embeddings when configured, always backed by the local hash embedding."""
    primary = (
        OpenAIEmbeddingProvider(settings=app_settings)
        if app_settings.remote_embeddings_enabled()
        else None
    )
    return FallbackEmbeddingProvider(primary)


def _build_describer(app_settings: Settings) -> IPageDescriber | None:
    if not app_settings.remote_embeddings_enabled():
        return None
    return OpenAIPageDescriber(settings=app_settings)


def build_service(
    app_settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
    tool_registry: IToolRegistry | None = None,
) -> DocumentRetrievalService:
    """Construct the full component graph from *app_settings*.

    The store backend is chosen once here; nothing downstream branches on it.
    """
    store = build_document_store(app_settings)
    embedding_provider = _build_embedding_provider(app_settings)
    ingestion = IngestionService(
        store=store,
        extractor=PyMuPDFPageExtractor(),
        embedding_provider=embedding_provider,
        source_loader=SourceLoader(http_client, timeout=app_settings.fetch_timeout_seconds),
        describer=_build_describer(app_settings),
        max_pages=app_settings.max_pages_per_ingest,
        default_chunk_tokens=app_settings.default_chunk_tokens,
        persist_batch_size=app_settings.persist_batch_size,
        heartbeat_seconds=app_settings.progress_heartbeat_seconds,
    )
    context = DocumentContext(
        store=store,
        ingestion=ingestion,
        embedding_provider=embedding_provider,
        tool_registry=tool_registry if tool_registry is not None else InMemoryToolRegistry(),
    )
    return DocumentRetrievalService(
        context,
        default_search_results=app_settings.default_search_results,
        max_search_results=app_settings.max_search_results,
        preview_chars=app_settings.search_preview_chars,
    )


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Instantiate every component for the web app.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    http_client = httpx.AsyncClient(timeout=app_settings.fetch_timeout_seconds)
    tool_registry = InMemoryToolRegistry()
    service = build_service(app_settings, http_client=http_client, tool_registry=tool_registry)
    ctx = service.context
    return {
        "http_client": http_client,
        "tool_registry": tool_registry,
        "retrieval_service": service,
        "provider_names": {
            "store": ctx.store.get_provider_name(),
            "embedding": ctx.embedding_provider.get_provider_name(),
            "extractor": PyMuPDFPageExtractor().get_provider_name(),
        },
    }


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
        store_backend=app_settings.store_backend,
    )

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        """Initialise all components on startup, clean up on shutdown."""
        components = _build_all(app_settings)
        for key, value in components.items():
            setattr(application.state, key, value)

        service: DocumentRetrievalService = components["retrieval_service"]
        await service.initialize()
        _logger.info(
            "app_startup",
            version=_VERSION,
            environment=app_settings.app_env,
            providers=components["provider_names"],
        )

        yield

        await service.close()
        http_client: httpx.AsyncClient = components["http_client"]
        await http_client.aclose()
        _logger.info("app_shutdown", message="Store and HTTP client closed")

    application = FastAPI(
        title="docrag API",
        version=_VERSION,
        description=(
            "Index PDF documents into a local retrieval store, then search them "
            "semantically or read them back in full."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


def main() -> None:
    """Run the API server with uvicorn."""
    app_settings = Settings()
    uvicorn.run(
        "docrag.main:create_app",
        factory=True,
        host=app_settings.app_host,
        port=app_settings.app_port,
        reload=(app_settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
