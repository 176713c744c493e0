"""Abstract base class for the tool-calling registry.

After a document is indexed or loaded, the retrieval service registers two
callable actions so an agent can query the document on its own: a
semantic search and a full-text fetch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

ToolHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ToolDefinition:
    """A named callable action with a JSON-schema parameter description."""

    name: str
    description: str
    handler: ToolHandler
    parameters_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )


class IToolRegistry(ABC):
    """Contract for registering callable actions with an agent framework."""

    @abstractmethod
    def register_tool(self, tool: ToolDefinition) -> None:
        """Register *tool*, replacing any existing tool with the same name."""

    @abstractmethod
    def unregister_tool(self, name: str) -> bool:
        """Remove the tool called *name*.  Returns ``False`` if it was unknown."""

    @abstractmethod
    def get_tool(self, name: str) -> ToolDefinition | None:
        """Return the tool called *name*, or ``None``."""

    @abstractmethod
    def list_tools(self) -> list[ToolDefinition]:
        """Return all registered tools."""
