"""ToolCallingAgent — an agent definition bound to a provider and tools."""

from __future__ import annotations

import asyncio
import logging
from contextvars import ContextVar
from typing import TYPE_CHECKING, Callable

from stepwise.agent.agent import Agent
from stepwise.agent.loop import TurnOutcome, agent_loop
from stepwise.agent.record import StepRecord
from stepwise.agent.registry import AgentRegistry
from stepwise.errors import MaxStepsExceeded, RecursiveDelegation
from stepwise.llm.message import Message
from stepwise.llm.provider import ChatProvider
from stepwise.session.wire import EventType, Wire
from stepwise.tool.builtin.final_answer import FINAL_ANSWER, FinalAnswerTool
from stepwise.tool.registry import ToolRegistry

if TYPE_CHECKING:
    from stepwise.context import StepLog

logger = logging.getLogger(__name__)

# Agents whose run encloses the current one
_call_chain: ContextVar[tuple[ToolCallingAgent, ...]] = ContextVar(
    "stepwise_call_chain", default=()
)

DEFAULT_SYSTEM_PROMPT = """\
You are an expert assistant who solves tasks by calling tools.

Call tools natively when you can. If you cannot, write exactly one action as
JSON after "Action:", for example:

Action: {"name": "search", "arguments": {"query": "current weather in Paris"}}

After each action you will receive an Observation with its result. Some tools
are other agents: give them a complete task description in "task".

When you have the answer, call the final_answer tool:

Action: {"name": "final_answer", "arguments": {"answer": "..."}}
"""


class ToolCallingAgent:
    """A runnable agent that can also serve as a sub-agent.

    ``run`` holds a lock for its whole duration, so the agent's step log is
    never shared between two concurrent runs.
    """

    def __init__(
        self,
        definition: Agent,
        provider: ChatProvider,
        tool_registry: ToolRegistry,
        agent_registry: AgentRegistry | None = None,
        wire: Wire | None = None,
        step_log: StepLog | None = None,
        history: list[Message] | None = None,
        tool_timeout: float | None = None,
    ) -> None:
        self.definition = definition
        self.provider = provider
        self.tools = _bind_tools(tool_registry, definition.tools)
        self.agents = agent_registry if agent_registry is not None else AgentRegistry()
        self.wire = wire or Wire()
        if step_log is None:
            from stepwise.context import StepLog  # context imports agent modules

            step_log = StepLog()
        self.step_log = step_log
        self.history = history or []
        self.tool_timeout = tool_timeout
        self.task = ""
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    @property
    def system_prompt(self) -> str:
        return self.definition.system_prompt or DEFAULT_SYSTEM_PROMPT

    @property
    def max_steps(self) -> int:
        return self.definition.max_steps

    async def run(
        self,
        task: str,
        reset: bool = True,
        on_step: Callable[[StepRecord], None] | None = None,
    ) -> str:
        """Run until a final answer and return it.

        Raises ``MaxStepsExceeded`` when the budget runs out and re-raises
        whatever aborted a step. Raises ``RecursiveDelegation`` when the
        agent is reached again through its own delegations, which would
        otherwise wait on its own lock forever.
        """
        chain = _call_chain.get()
        if self in chain:
            raise RecursiveDelegation(self.name, tuple(a.name for a in chain))

        token = _call_chain.set((*chain, self))
        try:
            async with self._lock:
                if reset:
                    await self.step_log.reset()
                self.task = task
                self.wire.emit(EventType.RUN_BEGIN, agent=self.name, task=task)
                result = await agent_loop(self, on_step=on_step)
                self.wire.emit(
                    EventType.RUN_END,
                    agent=self.name,
                    outcome=result.outcome.value,
                    steps=result.steps,
                )
        finally:
            _call_chain.reset(token)

        if result.outcome is TurnOutcome.ERROR and result.error is not None:
            raise result.error
        if result.final_answer is None:
            raise MaxStepsExceeded(self.name, self.max_steps)
        return result.final_answer

    def __repr__(self) -> str:
        return f"ToolCallingAgent(name={self.name!r}, tools={self.tools.names()!r})"


def _bind_tools(registry: ToolRegistry, names: list[str]) -> ToolRegistry:
    """Select the agent's tools and make sure ``final_answer`` is among them."""
    tools = registry.subset(names) if names else registry.subset(registry.names())
    if FINAL_ANSWER not in tools:
        tools.register(registry.get(FINAL_ANSWER) or FinalAnswerTool())
    return tools
