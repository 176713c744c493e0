"""Public interface definitions for every pluggable docrag collaborator.

Concrete adapters live in ``docrag/providers/`` and are chosen once at
construction time (see ``docrag/main.py``), so business logic never
branches on which backend is in use.

    Interface            ->  Concrete implementations
    ------------------------------------------------------------------
    IEmbeddingProvider   ->  OpenAIEmbeddingProvider,
                             LocalHashEmbeddingProvider,
                             FallbackEmbeddingProvider
    IDocumentStore       ->  MemoryDocumentStore, SQLiteDocumentStore
    IPageExtractor       ->  PyMuPDFPageExtractor
    IPageDescriber       ->  OpenAIPageDescriber
    IToolRegistry        ->  InMemoryToolRegistry
"""

from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.page_extractor import IPageDescriber, IPageExtractor, PageContent
from docrag.interfaces.tool_registry import IToolRegistry, ToolDefinition, ToolHandler

__all__ = [
    "IDocumentStore",
    "IEmbeddingProvider",
    "IPageDescriber",
    "IPageExtractor",
    "IToolRegistry",
    "PageContent",
    "ToolDefinition",
    "ToolHandler",
]
