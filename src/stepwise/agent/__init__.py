"""Agent system — step core, driving loop, definitions, registry."""

from stepwise.agent.agent import Agent, AgentConfig, discover_agents
from stepwise.agent.catalog import ActionDescriptor, ActionKind, build_catalog
from stepwise.agent.loop import LoopResult, TurnOutcome, agent_loop
from stepwise.agent.parser import parse_action
from stepwise.agent.record import StepRecord
from stepwise.agent.registry import AgentRegistry, ManagedAgent
from stepwise.agent.runner import ToolCallingAgent
from stepwise.agent.step import Dispatcher, run_step

__all__ = [
    "Agent",
    "AgentConfig",
    "discover_agents",
    "ActionDescriptor",
    "ActionKind",
    "build_catalog",
    "LoopResult",
    "TurnOutcome",
    "agent_loop",
    "parse_action",
    "StepRecord",
    "AgentRegistry",
    "ManagedAgent",
    "ToolCallingAgent",
    "Dispatcher",
    "run_step",
]
