"""Built-in tools shipped with every agent."""

from stepwise.tool.builtin.final_answer import FINAL_ANSWER, FinalAnswerTool
from stepwise.tool.builtin.think import ThinkTool

__all__ = [
    "FINAL_ANSWER",
    "FinalAnswerTool",
    "ThinkTool",
]
