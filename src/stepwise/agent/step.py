"""One agent step: catalog, model call, action resolution, dispatch.

The step is a single asyncio task. Its only concurrency is the tool batch:

1. Build the catalog (tools, then sub-agents as delegates)
2. Call the model once, record its raw text
3. Resolve actions: native tool calls, else the free-text fallback parser
4. Walk the actions in order:
   - ``final_answer`` runs at once and ends the step; anything after it,
     and any tool already queued, is dropped
   - sub-agent delegations run at once, one after another
   - every other action is queued
5. Run the queued tools concurrently; each failure becomes an observation

Model, parse, delegation and final-answer failures abort the step. Tool
failures never do.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from stepwise.agent.catalog import (
    DELEGATE_TASK_PARAM,
    ActionKind,
    build_catalog,
    classify_action,
)
from stepwise.agent.parser import parse_action
from stepwise.agent.record import StepRecord
from stepwise.agent.registry import AgentRegistry
from stepwise.errors import DelegationError, NoActionFound, ToolCallError
from stepwise.llm.message import ActionRequest, Message
from stepwise.llm.provider import ChatProvider, GenerationConstraints
from stepwise.llm.streaming import GenerateResult, generate
from stepwise.session.wire import Wire, utc_now
from stepwise.tool.builtin.final_answer import FINAL_ANSWER
from stepwise.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)

NO_ACTION_OBSERVATION = (
    "No tool call was made. If this is the final answer, "
    "use the final_answer tool to return your answer."
)


def resolve_actions(result: GenerateResult) -> list[ActionRequest]:
    """Turn a model turn into the list of actions to dispatch.

    Native tool calls win; the text is only parsed when there are none.
    Text without an action block resolves to no actions (it is then the
    final answer). A malformed action block raises ``ActionParseError``.
    """
    if result.has_actions:
        return result.actions

    text = result.text
    if not text.strip():
        return []

    try:
        return [parse_action(text)]
    except NoActionFound:
        return []


@dataclass
class Dispatcher:
    """Executes one step's resolved actions against the registries."""

    tools: ToolRegistry
    agents: AgentRegistry = field(default_factory=AgentRegistry)
    wire: Wire = field(default_factory=Wire)
    agent_name: str = ""
    tool_timeout: float | None = None

    async def dispatch(
        self, record: StepRecord, actions: Sequence[ActionRequest], text: str
    ) -> StepRecord:
        if not actions:
            record.actions = None
            if text.strip():
                self._finish(record, text)
            else:
                record.observations = [NO_ACTION_OBSERVATION]
            return record

        record.actions = list(actions)
        self.wire.tool_calls(
            record.step_number, self.agent_name, [a.to_dict() for a in actions]
        )

        observations: list[str] = []
        queued: list[ActionRequest] = []
        agent_names = self.agents.names()

        for action in actions:
            kind = classify_action(action.name, agent_names)
            if kind is ActionKind.FINAL_ANSWER:
                if queued:
                    logger.info(
                        "Final answer requested; dropping %d queued tool call(s)",
                        len(queued),
                    )
                answer = await self._call_final_answer(action)
                self._finish(record, answer)
                return record
            if kind is ActionKind.DELEGATE:
                observations.append(await self._delegate(action))
            else:
                queued.append(action)

        results = await asyncio.gather(*(self._run_tool(a) for a in queued))
        observations.extend(results)
        record.observations = observations
        return record

    def _finish(self, record: StepRecord, answer: str) -> None:
        record.final_answer = answer
        record.observations = [answer]
        self.wire.final_answer(self.agent_name, answer)
        logger.info("Agent %s: final answer produced", self.agent_name or "?")

    async def _call_final_answer(self, action: ActionRequest) -> str:
        """Run the answer tool directly: the answer is never truncated."""
        self.wire.tool_begin(self.agent_name, action.id, action.name, action.arguments)
        tool = self.tools.get(FINAL_ANSWER)
        if tool is None:
            raise ToolCallError(
                f"Unknown tool: {FINAL_ANSWER}. "
                f"Available tools: {', '.join(self.tools.names())}",
                FINAL_ANSWER,
            )
        answer = await tool(action.arguments)
        self.wire.tool_result(self.agent_name, action.id, action.name, answer, False)
        return answer

    async def _delegate(self, action: ActionRequest) -> str:
        task = _task_argument(action.arguments)
        if task is None:
            logger.warning(
                "Delegation to %s has no string '%s' argument",
                action.name,
                DELEGATE_TASK_PARAM,
            )
            return (
                f"Agent '{action.name}' was not run: "
                f"expected a string '{DELEGATE_TASK_PARAM}' argument."
            )

        agent = self.agents.get(action.name)
        assert agent is not None  # classify_action only returns DELEGATE for known names

        logger.info("Delegating to agent %s: %s", action.name, task[:100])
        self.wire.subagent_begin(self.agent_name, action.name, task)
        try:
            result = await agent.run(task, reset=True)
        except Exception as e:
            raise DelegationError(action.name, e) from e
        result = str(result)
        self.wire.subagent_end(self.agent_name, action.name, result)
        return result

    async def _run_tool(self, action: ActionRequest) -> str:
        """Run one queued tool. Never raises (except on cancellation)."""
        logger.info("Executing tool call: %s", action.name)
        self.wire.tool_begin(self.agent_name, action.id, action.name, action.arguments)
        is_error = False
        try:
            call = self.tools.call(action.name, action.arguments)
            if self.tool_timeout is not None:
                content = await asyncio.wait_for(call, self.tool_timeout)
            else:
                content = await call
        except ToolCallError as e:
            content, is_error = str(e), True
        except asyncio.TimeoutError:
            content = f"Tool {action.name} timed out after {self.tool_timeout}s"
            is_error = True
        except Exception as e:
            logger.error("Tool %s failed: %s", action.name, e)
            content, is_error = f"Error: {e}", True

        self.wire.tool_result(self.agent_name, action.id, action.name, content, is_error)
        return content


def _task_argument(arguments: Any) -> str | None:
    if isinstance(arguments, str):
        return arguments
    if isinstance(arguments, dict):
        task = arguments.get(DELEGATE_TASK_PARAM)
        if isinstance(task, str):
            return task
    return None


async def run_step(
    record: StepRecord,
    *,
    provider: ChatProvider,
    memory: Sequence[Message],
    tools: ToolRegistry,
    agents: AgentRegistry | None = None,
    history: Sequence[Message] | None = None,
    constraints: GenerationConstraints | None = None,
    wire: Wire | None = None,
    agent_name: str = "",
    tool_timeout: float | None = None,
) -> StepRecord:
    """Run one step and fill ``record`` in place.

    Args:
        record: Empty record for this step (``step_number`` set).
        provider: LLM provider.
        memory: Conversation snapshot for the model.
        tools: Registry of callable tools (must hold ``final_answer`` for
            the model to end the run through it).
        agents: Sub-agents available for delegation.
        history: Auxiliary messages merged after the system prompt.
        constraints: Generation limits; ``stop`` defaults to ``["Observation:"]``.
        wire: Event bus for observers.
        agent_name: Name used in logs and events.
        tool_timeout: Optional per-tool timeout in seconds.

    Returns:
        The same record, terminal if it carries a final answer.
    """
    agents = agents if agents is not None else AgentRegistry()
    wire = wire or Wire()
    dispatcher = Dispatcher(
        tools=tools,
        agents=agents,
        wire=wire,
        agent_name=agent_name,
        tool_timeout=tool_timeout,
    )

    catalog = build_catalog(tools.tools(), agents.agents())

    record.started_at = utc_now()
    wire.step_begin(record.step_number, agent_name)
    try:
        record.agent_memory = list(memory)
        wire.memory(
            record.step_number,
            agent_name,
            [m.to_dict() for m in record.agent_memory],
        )

        result = await generate(
            provider,
            record.agent_memory,
            history,
            catalog,
            constraints or GenerationConstraints(),
            on_text=lambda text: wire.send_text(text, agent_name),
        )
        record.llm_output = result.text
        record.usage = result.usage

        actions = resolve_actions(result)
        await dispatcher.dispatch(record, actions, result.text)
    finally:
        record.ended_at = utc_now()
        wire.step_end(
            record.step_number, agent_name, record.is_terminal, record.ended_at
        )

    logger.info(
        "Agent %s: step %d done (%d action(s), %d observation(s), terminal=%s)",
        agent_name or "?",
        record.step_number,
        len(record.actions or []),
        len(record.observations),
        record.is_terminal,
    )
    return record
