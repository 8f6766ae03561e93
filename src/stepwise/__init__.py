"""stepwise — the step-execution core of a tool-calling agent."""

from stepwise.agent import (
    Agent,
    AgentRegistry,
    StepRecord,
    ToolCallingAgent,
    TurnOutcome,
    run_step,
)
from stepwise.context import StepLog
from stepwise.tool import BaseTool, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentRegistry",
    "StepRecord",
    "ToolCallingAgent",
    "TurnOutcome",
    "run_step",
    "StepLog",
    "BaseTool",
    "ToolRegistry",
]
