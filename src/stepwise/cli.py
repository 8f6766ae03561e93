"""CLI entry point for stepwise."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from stepwise.agent.agent import Agent, AgentConfig, discover_agents
from stepwise.agent.registry import AgentRegistry
from stepwise.agent.runner import ToolCallingAgent
from stepwise.config import StepwiseConfig
from stepwise.context import StepLog
from stepwise.llm.provider import ChatProvider, create_provider
from stepwise.session.wire import EventType, Wire, WireEvent
from stepwise.tool.builtin import FinalAnswerTool, ThinkTool
from stepwise.tool.registry import ToolRegistry

app = typer.Typer(
    name="stepwise",
    help="Run a tool-calling agent one step at a time.",
    no_args_is_help=True,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@dataclass
class RunPipeline:
    """Everything needed to run the root agent."""

    agent: ToolCallingAgent
    tool_registry: ToolRegistry
    agent_registry: AgentRegistry
    step_log_path: Path


def _provider_for(config: StepwiseConfig, agent: Agent) -> ChatProvider:
    return create_provider(
        model=agent.config.model or config.llm.model,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_tokens,
    )


def _build_pipeline(task: str, config: StepwiseConfig, wire: Wire) -> RunPipeline:
    tool_registry = ToolRegistry(
        max_lines=config.run.max_observation_lines,
        max_bytes=config.run.max_observation_bytes,
    )
    tool_registry.register_many([ThinkTool(), FinalAnswerTool()])

    agent_registry = AgentRegistry()
    agents_dir = os.path.abspath(config.agents_dir) if config.agents_dir else None
    if agents_dir and os.path.isdir(agents_dir):
        for definition in discover_agents([agents_dir]):
            agent_registry.register(
                ToolCallingAgent(
                    definition,
                    provider=_provider_for(config, definition),
                    tool_registry=tool_registry,
                    wire=wire,
                    tool_timeout=config.run.tool_timeout,
                )
            )

    session_dir = Path(os.path.expanduser(config.session_dir))
    session_id = hashlib.sha256(task.encode()).hexdigest()[:12]
    step_log_path = session_dir / f"{session_id}.jsonl"

    root = Agent(
        config=AgentConfig(
            name="stepwise",
            description="Root agent",
            max_steps=config.run.max_steps,
        )
    )
    agent = ToolCallingAgent(
        root,
        provider=_provider_for(config, root),
        tool_registry=tool_registry,
        agent_registry=agent_registry,
        wire=wire,
        step_log=StepLog(path=step_log_path),
        tool_timeout=config.run.tool_timeout,
    )
    return RunPipeline(
        agent=agent,
        tool_registry=tool_registry,
        agent_registry=agent_registry,
        step_log_path=step_log_path,
    )


def render_event(event: WireEvent) -> str | None:
    """One console line for a wire event, or ``None`` to skip it."""
    d = event.data
    agent = d.get("agent", "")
    prefix = f"[{escape(agent)}] " if agent else ""

    if event.type == EventType.STEP_BEGIN:
        return f"\n{prefix}[bold]Step {d.get('step', 0)}[/bold]"
    if event.type == EventType.TOOL_BEGIN:
        args = json.dumps(d.get("arguments"), ensure_ascii=False)
        return f"{prefix}> {escape(d.get('name', '?'))} {escape(args[:120])}"
    if event.type == EventType.TOOL_RESULT:
        content = d.get("content", "")
        status = "[red]ERROR[/red]" if d.get("is_error") else "OK"
        first_line = content.split("\n")[0][:100] if content else ""
        return f"{prefix}< {escape(d.get('name', '?'))} {status}: {escape(first_line)}"
    if event.type == EventType.SUBAGENT_BEGIN:
        return f"{prefix}--- delegating to {escape(d.get('subagent', '?'))} ---"
    if event.type == EventType.SUBAGENT_END:
        return f"{prefix}--- {escape(d.get('subagent', '?'))} done ---"
    if event.type == EventType.ERROR:
        return f"{prefix}[red]ERROR: {escape(d.get('error', 'Unknown error'))}[/red]"
    return None


async def _run(task: str, config: StepwiseConfig) -> int:
    wire = Wire()
    pipeline = _build_pipeline(task, config, wire)

    async def _consume_wire() -> None:
        queue = wire.subscribe()
        while True:
            event = await queue.get()
            if event is None:
                break
            if event.type == EventType.TEXT:
                console.print(escape(event.data.get("text", "")), end="")
                continue
            line = render_event(event)
            if line is not None:
                console.print(line)
        wire.unsubscribe(queue)

    consumer_task = asyncio.create_task(_consume_wire())
    await asyncio.sleep(0)  # let the consumer subscribe

    console.print(f"Tools: {', '.join(pipeline.agent.tools.names())}")
    if len(pipeline.agent_registry):
        console.print(f"Agents: {', '.join(pipeline.agent_registry.names())}")

    exit_code = 0
    try:
        answer = await pipeline.agent.run(task)
    except Exception as e:
        answer = None
        console.print(f"[red]Run failed:[/red] {escape(str(e))}")
        exit_code = 1
    finally:
        wire.close()
        await consumer_task

    if answer is not None:
        console.print(Panel(escape(answer), title="Final answer"))
    console.print(f"Step log saved to: {pipeline.step_log_path}")
    return exit_code


@app.command()
def run(
    task: str = typer.Argument(help="The task for the agent."),
    model: str | None = typer.Option(
        None, "--model", "-m", help="LLM model to use (default: from env/config)."
    ),
    max_steps: int | None = typer.Option(
        None, "--max-steps", "-n", help="Max steps for the root agent."
    ),
    agents_dir: str | None = typer.Option(
        None, "--agents-dir", "-a", help="Directory of sub-agent definitions."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run the agent on TASK until it produces a final answer."""
    setup_logging(verbose)

    config = StepwiseConfig.load(config_file)
    if model:
        config.llm.model = model
    if max_steps:
        config.run.max_steps = max_steps
    if agents_dir:
        config.agents_dir = agents_dir

    console.print(f"Model: {config.llm.model}")
    exit_code = asyncio.run(_run(task, config))
    if exit_code:
        raise typer.Exit(exit_code)


@app.command()
def agents(
    agents_dir: str | None = typer.Option(
        None, "--agents-dir", "-a", help="Directory of sub-agent definitions."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """List the sub-agent definitions that would be available."""
    config = StepwiseConfig.load(config_file)
    search_dir = os.path.abspath(agents_dir or config.agents_dir)
    found = discover_agents([search_dir])
    if not found:
        typer.echo(f"No agents found in {search_dir}")
        return
    for definition in found:
        tools = ", ".join(definition.tools) or "all tools"
        typer.echo(f"{definition.name}: {definition.description} [{tools}]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
