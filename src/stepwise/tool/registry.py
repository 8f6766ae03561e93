"""Tool registry — register, look up and call tools by name."""

from __future__ import annotations

import logging
from typing import Any

from stepwise.errors import ToolCallError
from stepwise.tool.base import BaseTool
from stepwise.tool.truncation import MAX_BYTES, MAX_LINES, truncate_output

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of available tools.

    Shared by every in-flight action of a step and read-only while a step
    dispatches, so concurrent ``call``s need no locking here. Tools with
    internal mutable state synchronize it themselves.
    """

    def __init__(
        self,
        max_lines: int = MAX_LINES,
        max_bytes: int = MAX_BYTES,
    ) -> None:
        self._tools: dict[str, BaseTool] = {}
        self.max_lines = max_lines
        self.max_bytes = max_bytes

    def register(self, tool: BaseTool) -> None:
        """Register a tool instance."""
        if tool.name in self._tools:
            logger.warning("Tool %s already registered, overwriting", tool.name)
        self._tools[tool.name] = tool

    def register_many(self, tools: list[BaseTool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        """Get all registered tool names, in registration order."""
        return list(self._tools.keys())

    def tools(self, names: list[str] | None = None) -> list[BaseTool]:
        """Get tools in registration order, optionally filtered by name."""
        if names is None:
            return list(self._tools.values())
        return [t for t in self._tools.values() if t.name in names]

    def subset(self, names: list[str]) -> ToolRegistry:
        """Create a new registry with only the specified tools."""
        reg = ToolRegistry(max_lines=self.max_lines, max_bytes=self.max_bytes)
        for name in names:
            tool = self._tools.get(name)
            if tool:
                reg.register(tool)
            else:
                logger.warning("Tool %s not found in registry", name)
        return reg

    async def call(self, name: str, arguments: Any) -> str:
        """Call a tool by exact name.

        Returns the (truncated) tool output. Raises ``ToolCallError`` for
        unknown tools and tool failures.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolCallError(
                f"Unknown tool: {name}. Available tools: {', '.join(self.names())}",
                name,
            )

        output = await tool(arguments)
        return truncate_output(
            str(output), max_lines=self.max_lines, max_bytes=self.max_bytes
        )

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
