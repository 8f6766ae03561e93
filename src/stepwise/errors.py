"""Exception hierarchy for step execution.

Only ``ToolCallError`` is recoverable inside a step: the dispatcher turns it
into an observation. Everything else aborts the step and reaches the
driving loop.
"""

from __future__ import annotations


class StepwiseError(Exception):
    """Base class for all stepwise errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(StepwiseError):
    """Malformed catalog entry (e.g. a tool or agent with an empty name)."""


class ActionParseError(StepwiseError):
    """Free text contained an action block that could not be decoded."""


class NoActionFound(ActionParseError):
    """Free text contained no action block at all."""


class ToolCallError(StepwiseError):
    """A tool failed. ``str(err)`` is used verbatim as the observation."""

    def __init__(self, message: str, tool: str = "") -> None:
        self.tool = tool
        super().__init__(message)


class DelegationError(StepwiseError):
    """A sub-agent failed while running a delegated task."""

    def __init__(self, agent: str, cause: BaseException) -> None:
        self.agent = agent
        self.cause = cause
        super().__init__(f"Sub-agent '{agent}' failed: {cause}")


class MaxStepsExceeded(StepwiseError):
    """An agent run used its whole step budget without a final answer."""

    def __init__(self, agent: str, max_steps: int) -> None:
        self.agent = agent
        self.max_steps = max_steps
        super().__init__(
            f"Agent '{agent}' reached max steps ({max_steps}) without a final answer"
        )


class RecursiveDelegation(StepwiseError):
    """An agent was asked to run while its own run is still in progress."""

    def __init__(self, agent: str, chain: tuple[str, ...]) -> None:
        self.agent = agent
        self.chain = chain
        super().__init__(
            f"Agent '{agent}' is already running in this call chain: "
            + " -> ".join((*chain, agent))
        )
