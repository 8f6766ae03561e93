"""Base tool classes with Pydantic parameter validation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from stepwise.errors import ToolCallError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class ToolResult:
    """Base result from a tool execution."""

    output: str = ""
    is_error: bool = False


@dataclass
class ToolOk(ToolResult):
    """Successful tool result."""

    is_error: bool = False


@dataclass
class ToolError(ToolResult):
    """Failed tool result."""

    is_error: bool = True


class BaseTool(ABC, Generic[T]):
    """Base class for all tools.

    Each tool declares its parameters as a Pydantic model and returns a
    ``ToolOk`` or ``ToolError``.

    Usage:
        class SearchParams(BaseModel):
            query: str

        class SearchTool(BaseTool[SearchParams]):
            name = "search"
            description = "Search the web"
            param_model = SearchParams

            async def execute(self, params: SearchParams) -> ToolResult:
                return ToolOk(output="...")
    """

    name: ClassVar[str]
    description: ClassVar[str]
    param_model: ClassVar[type[BaseModel]]

    async def __call__(self, arguments: Any) -> str:
        """Validate arguments and execute.

        Returns the tool output on success. Invalid arguments, a
        ``ToolError`` result, or an exception inside ``execute`` all raise
        ``ToolCallError`` carrying a message fit to show the model.
        """
        try:
            params = self.param_model.model_validate(arguments)
        except ValidationError as e:
            raise ToolCallError(f"Invalid parameters for {self.name}: {e}", self.name) from e

        try:
            result = await self.execute(params)  # type: ignore[arg-type]
        except ToolCallError:
            raise
        except Exception as e:
            logger.error("Tool %s execution error: %s", self.name, e, exc_info=True)
            raise ToolCallError(f"Error executing {self.name}: {e}", self.name) from e

        if result.is_error:
            raise ToolCallError(result.output, self.name)
        return result.output

    @abstractmethod
    async def execute(self, params: T) -> ToolResult:
        """Execute the tool with validated parameters."""
        ...

    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema of the parameters, without Pydantic's title and $defs."""
        schema = self.param_model.model_json_schema()
        schema.pop("title", None)
        schema.pop("$defs", None)
        return schema
