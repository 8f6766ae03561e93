"""Final answer tool — the reserved action that ends a run."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from stepwise.tool.base import BaseTool, ToolOk, ToolResult

FINAL_ANSWER = "final_answer"


class FinalAnswerParams(BaseModel):
    answer: str = Field(description="The final answer to the task.")


class FinalAnswerTool(BaseTool[FinalAnswerParams]):
    """Return the final answer to the task.

    The step dispatcher recognizes this name before any other and stops
    the step as soon as the call returns.
    """

    name: ClassVar[str] = FINAL_ANSWER
    description: ClassVar[str] = (
        "Provides a final answer to the given task. Call this once you are "
        "done; nothing else in the same turn will run after it."
    )
    param_model: ClassVar[type[BaseModel]] = FinalAnswerParams

    async def execute(self, params: FinalAnswerParams) -> ToolResult:
        return ToolOk(output=params.answer)
