"""Tool system — base classes, registry, and output truncation."""

from stepwise.tool.base import BaseTool, ToolError, ToolOk, ToolResult
from stepwise.tool.registry import ToolRegistry
from stepwise.tool.truncation import truncate_output

__all__ = [
    "BaseTool",
    "ToolResult",
    "ToolOk",
    "ToolError",
    "ToolRegistry",
    "truncate_output",
]
