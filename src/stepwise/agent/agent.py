"""Agent definitions — loaded from YAML frontmatter in markdown files."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class AgentConfig:
    """Configuration for an agent, typically from YAML frontmatter."""

    name: str
    description: str = ""
    tools: list[str] = field(default_factory=list)  # empty = every registered tool
    max_steps: int = 20
    model: str | None = None  # Override model for this agent
    temperature: float | None = None


@dataclass
class Agent:
    """An agent definition, not yet bound to a provider or tools.

    Sub-agents are defined as markdown files with YAML frontmatter:

        ---
        name: researcher
        description: Searches the web and summarizes what it finds
        tools: [search, visit_page]
        max_steps: 10
        ---

        You are a meticulous research assistant...
    """

    config: AgentConfig
    system_prompt: str = ""

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def description(self) -> str:
        return self.config.description

    @property
    def tools(self) -> list[str]:
        return self.config.tools

    @property
    def max_steps(self) -> int:
        return self.config.max_steps

    @classmethod
    def from_markdown(cls, path: str) -> Agent:
        """Load an agent definition from a markdown file with YAML frontmatter."""
        with open(path, "r") as f:
            content = f.read()

        config_dict, prompt = _parse_frontmatter(content)
        config = AgentConfig(**config_dict)
        return cls(config=config, system_prompt=prompt.strip())

    @classmethod
    def from_dict(cls, data: dict[str, Any], system_prompt: str = "") -> Agent:
        """Create an agent from a dictionary config."""
        return cls(config=AgentConfig(**data), system_prompt=system_prompt)


def _parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter from markdown content.

    Returns (config_dict, body_text).
    """
    import yaml  # lazy import — only needed when loading agents

    pattern = re.compile(r"^---\s*\n(.*?)\n---\s*\n(.*)", re.DOTALL)
    match = pattern.match(content)
    if not match:
        return {}, content

    try:
        config = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid agent frontmatter: {e}") from e
    if not isinstance(config, dict):
        raise ValueError("Agent frontmatter must be a YAML mapping")
    return config, match.group(2)


def discover_agents(search_dirs: list[str]) -> list[Agent]:
    """Discover agent definitions from markdown files in directories.

    Files that fail to parse or have no ``name`` are skipped with a warning.
    """
    agents = []
    for dir_path in search_dirs:
        if not os.path.isdir(dir_path):
            continue
        for fname in sorted(os.listdir(dir_path)):
            if not fname.endswith(".md"):
                continue
            full_path = os.path.join(dir_path, fname)
            try:
                agent = Agent.from_markdown(full_path)
            except (OSError, ValueError, TypeError) as e:
                logger.warning("Skipping agent file %s: %s", full_path, e)
                continue
            if agent.config.name:
                agents.append(agent)
            else:
                logger.warning("Skipping agent file %s: no name", full_path)
    return agents
