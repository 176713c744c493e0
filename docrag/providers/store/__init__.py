"""Document store providers and the backend factory."""

from __future__ import annotations

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.providers.store.memory_document_store import MemoryDocumentStore
from docrag.providers.store.sqlite_document_store import SQLiteDocumentStore
from docrag.utils.errors import ConfigurationError


def build_document_store(settings: Settings) -> IDocumentStore:
    """Return the store named by ``settings.store_backend``."""
    backend = settings.store_backend.strip().lower()
    if backend == "memory":
        return MemoryDocumentStore()
    if backend == "sqlite":
        return SQLiteDocumentStore(settings.sqlite_db_path)
    raise ConfigurationError(
        message=f"Unknown store backend {settings.store_backend!r} (expected 'sqlite' or 'memory')"
    )


__all__ = ["MemoryDocumentStore", "SQLiteDocumentStore", "build_document_store"]
