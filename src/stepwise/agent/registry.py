"""Agent registry — the sub-agents an agent may delegate to."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ManagedAgent(Protocol):
    """Anything that can take a delegated task.

    ``run`` owns the agent exclusively for its whole duration; callers
    must not run the same agent twice at once.
    """

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    async def run(self, task: str, reset: bool = True) -> str: ...


class AgentRegistry:
    """Registry of sub-agents, keyed by name, in registration order."""

    def __init__(self) -> None:
        self._agents: dict[str, ManagedAgent] = {}

    def register(self, agent: ManagedAgent) -> None:
        if agent.name in self._agents:
            logger.warning("Agent %s already registered, overwriting", agent.name)
        self._agents[agent.name] = agent

    def get(self, name: str) -> ManagedAgent | None:
        return self._agents.get(name)

    def names(self) -> list[str]:
        return list(self._agents.keys())

    def agents(self) -> list[ManagedAgent]:
        return list(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, name: str) -> bool:
        return name in self._agents
