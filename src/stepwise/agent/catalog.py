"""Catalog builder — the actions advertised to the model for one step."""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stepwise.errors import ConfigurationError
from stepwise.tool.builtin.final_answer import FINAL_ANSWER

if TYPE_CHECKING:
    from stepwise.agent.registry import ManagedAgent
    from stepwise.tool.base import BaseTool

logger = logging.getLogger(__name__)

DELEGATE_TASK_PARAM = "task"


class ActionKind(enum.Enum):
    FINAL_ANSWER = "final_answer"
    DELEGATE = "delegate"
    TOOL = "tool"


@dataclass
class ActionDescriptor:
    """Provider-agnostic description of one invocable action."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    kind: ActionKind = ActionKind.TOOL

    def to_openai_spec(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def delegate_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            DELEGATE_TASK_PARAM: {
                "type": "string",
                "description": "The task to perform",
            }
        },
        "required": [DELEGATE_TASK_PARAM],
    }


def build_catalog(
    tools: Sequence[BaseTool],
    agents: Sequence[ManagedAgent] = (),
) -> list[ActionDescriptor]:
    """Tools first, then one delegate descriptor per sub-agent.

    Raises ``ConfigurationError`` for an entry with an empty name.
    """
    catalog: list[ActionDescriptor] = []
    for tool in tools:
        if not getattr(tool, "name", ""):
            raise ConfigurationError(f"Tool {type(tool).__name__} has an empty name")
        catalog.append(
            ActionDescriptor(
                name=tool.name,
                description=tool.description,
                parameters=tool.parameters_schema(),
                kind=(
                    ActionKind.FINAL_ANSWER
                    if tool.name == FINAL_ANSWER
                    else ActionKind.TOOL
                ),
            )
        )

    for agent in agents:
        if not agent.name:
            raise ConfigurationError("Sub-agent has an empty name")
        catalog.append(
            ActionDescriptor(
                name=agent.name,
                description=agent.description,
                parameters=delegate_schema(),
                kind=ActionKind.DELEGATE,
            )
        )

    seen: set[str] = set()
    for d in catalog:
        if d.name in seen:
            logger.warning("Action name %s appears more than once in the catalog", d.name)
        seen.add(d.name)

    return catalog


def classify_action(name: str, agent_names: Sequence[str]) -> ActionKind:
    """Exact-name lookup: the final answer first, then sub-agents, then tools."""
    if name == FINAL_ANSWER:
        return ActionKind.FINAL_ANSWER
    if name in agent_names:
        return ActionKind.DELEGATE
    return ActionKind.TOOL
