"""docrag: index PDF documents and retrieve from them by semantic search."""

__version__ = "0.1.0"
