"""Think tool — scratchpad for reasoning without acting."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from stepwise.tool.base import BaseTool, ToolOk, ToolResult


class ThinkParams(BaseModel):
    thought: str = Field(
        description="Your reasoning: plan the next actions or check a result."
    )


class ThinkTool(BaseTool[ThinkParams]):
    """Scratchpad for internal reasoning. No side effects."""

    name: ClassVar[str] = "think"
    description: ClassVar[str] = (
        "Think through the problem before acting. "
        "No side effects; the thought is recorded in the step log."
    )
    param_model: ClassVar[type[BaseModel]] = ThinkParams

    async def execute(self, params: ThinkParams) -> ToolResult:
        return ToolOk(output="Thought recorded.")
