"""The driving loop — run steps until an answer, the budget, or an error."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from stepwise.agent.record import StepRecord
from stepwise.agent.step import run_step
from stepwise.llm.provider import GenerationConstraints

if TYPE_CHECKING:
    from stepwise.agent.runner import ToolCallingAgent

logger = logging.getLogger(__name__)


class TurnOutcome(enum.Enum):
    """Why did the run end?"""

    COMPLETE = "complete"  # A step produced a final answer
    MAX_STEPS = "max_steps"  # Hit the step limit
    ERROR = "error"  # A step aborted


@dataclass
class LoopResult:
    outcome: TurnOutcome
    steps: int = 0
    final_answer: str | None = None
    error: Exception | None = None


async def agent_loop(
    agent: ToolCallingAgent,
    on_step: Callable[[StepRecord], None] | None = None,
) -> LoopResult:
    """Drive ``agent`` one step at a time.

    Each iteration rebuilds memory from the step log, runs a step, and
    appends the finished record to the log. A step that raises is not
    logged; the loop stops with ``TurnOutcome.ERROR`` and carries the
    exception.
    """
    constraints = GenerationConstraints(temperature=agent.definition.config.temperature)
    first = len(agent.step_log) + 1

    for step_no in range(first, first + agent.max_steps):
        logger.info(
            "Agent %s: step %d/%d", agent.name, step_no - first + 1, agent.max_steps
        )
        record = StepRecord(step_number=step_no)
        memory = agent.step_log.to_messages(agent.system_prompt, agent.task)

        try:
            await run_step(
                record,
                provider=agent.provider,
                memory=memory,
                tools=agent.tools,
                agents=agent.agents,
                history=agent.history,
                constraints=constraints,
                wire=agent.wire,
                agent_name=agent.name,
                tool_timeout=agent.tool_timeout,
            )
        except Exception as e:
            logger.error(
                "Agent %s: unrecoverable error at step %d: %s",
                agent.name,
                step_no,
                e,
                exc_info=True,
            )
            agent.wire.send_error(str(e), agent.name)
            return LoopResult(
                TurnOutcome.ERROR, steps=step_no - first + 1, error=e
            )

        await agent.step_log.append(record)
        if on_step:
            on_step(record)

        if record.is_terminal:
            logger.info("Agent %s completed after %d steps", agent.name, step_no - first + 1)
            return LoopResult(
                TurnOutcome.COMPLETE,
                steps=step_no - first + 1,
                final_answer=record.final_answer,
            )

    logger.warning("Agent %s hit max steps (%d)", agent.name, agent.max_steps)
    return LoopResult(TurnOutcome.MAX_STEPS, steps=agent.max_steps)
