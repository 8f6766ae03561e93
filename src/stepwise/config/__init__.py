"""Configuration — Pydantic models for stepwise settings."""

from __future__ import annotations

import json
import os
from typing import Any

from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM provider configuration.

    Model names use litellm's provider-prefix format, e.g.
    "openai/gpt-4o" or "anthropic/claude-sonnet-4-5-20250929". API keys
    come from the provider's environment variables.
    """

    model: str = Field(default="openai/gpt-4o-mini")
    temperature: float | None = Field(default=None)
    max_tokens: int | None = Field(default=None)


class RunConfig(BaseModel):
    """Step execution limits."""

    max_steps: int = Field(default=20, ge=1, description="Max steps per agent run")
    tool_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Per-tool timeout in seconds; a timeout becomes an observation",
    )
    max_observation_lines: int = Field(default=2000, ge=1)
    max_observation_bytes: int = Field(default=50 * 1024, ge=1)


class StepwiseConfig(BaseModel):
    """Top-level stepwise configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    agents_dir: str = Field(
        default="agents", description="Directory of sub-agent definitions"
    )
    session_dir: str = Field(
        default="~/.stepwise/sessions", description="Where step logs are written"
    )

    @classmethod
    def load(cls, config_path: str | None = None) -> StepwiseConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            STEPWISE_MODEL           - Override the model (litellm format)
            STEPWISE_MAX_STEPS       - Override max steps per run
            STEPWISE_TOOL_TIMEOUT    - Per-tool timeout in seconds
        """
        from dotenv import find_dotenv, load_dotenv

        load_dotenv(find_dotenv(usecwd=True), override=True)

        config_data: dict[str, Any] = {}
        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        llm = config_data.get("llm", {})
        run = config_data.get("run", {})

        env_model = os.environ.get("STEPWISE_MODEL")
        if env_model:
            llm["model"] = env_model

        env_max_steps = os.environ.get("STEPWISE_MAX_STEPS")
        if env_max_steps:
            run["max_steps"] = int(env_max_steps)

        env_tool_timeout = os.environ.get("STEPWISE_TOOL_TIMEOUT")
        if env_tool_timeout:
            run["tool_timeout"] = float(env_tool_timeout)

        if llm:
            config_data["llm"] = llm
        if run:
            config_data["run"] = run

        return cls.model_validate(config_data)
