"""Tool registry providers."""

from docrag.providers.tools.memory_tool_registry import InMemoryToolRegistry

__all__ = ["InMemoryToolRegistry"]
