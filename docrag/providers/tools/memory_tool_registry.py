"""Process-local tool registry.

Holds tool definitions in a dict keyed by name.  An agent framework adapter
can read :meth:`list_tools` to advertise them and route calls through
:meth:`call_tool`.
"""

from __future__ import annotations

from typing import Any

import structlog

from docrag.interfaces.tool_registry import IToolRegistry, ToolDefinition
from docrag.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryToolRegistry(IToolRegistry):
    """Dict-backed :class:`IToolRegistry`."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register_tool(self, tool: ToolDefinition) -> None:
        replaced = tool.name in self._tools
        self._tools[tool.name] = tool
        logger.debug("tool_registered", tool=tool.name, replaced=replaced)

    def unregister_tool(self, name: str) -> bool:
        removed = self._tools.pop(name, None) is not None
        if removed:
            logger.debug("tool_unregistered", tool=name)
        return removed

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Invoke the tool called *name* with *arguments*.

        Raises
        ------
        NotFoundError
            If no tool with that name is registered.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise NotFoundError(message=f"Unknown tool: {name}", provider_name="tools")
        return await tool.handler(arguments or {})
