"""LLM provider abstraction — unified via litellm.

litellm handles provider detection from the model string prefix and
normalizes streaming to OpenAI-format chunks. Those are converted to a
plain dict format consumed by ``streaming.generate``:

    {
        "id": str,
        "finish_reason": str | None,
        "delta": {
            "role": str | None,
            "content": str | None,
            "tool_calls": [...] | None,   # OpenAI-style tool call deltas
        },
        "usage": {
            "prompt_tokens": int,
            "completion_tokens": int,
            "total_tokens": int,
        } | None,
    }
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from litellm import CustomStreamWrapper, ModelResponse, ModelResponseStream

logger = logging.getLogger(__name__)

OBSERVATION_STOP = "Observation:"


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider."""

    model: str
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass
class GenerationConstraints:
    """Per-call generation limits handed to the provider.

    The step core always passes ``stop=["Observation:"]`` so the model
    cannot hallucinate the result of its own action.
    """

    stop: list[str] = field(default_factory=lambda: [OBSERVATION_STOP])
    temperature: float | None = None
    max_tokens: int | None = None


@runtime_checkable
class ChatProvider(Protocol):
    """Protocol for LLM providers."""

    @property
    def config(self) -> ProviderConfig: ...

    def stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        constraints: GenerationConstraints | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream a chat completion. Yields normalized chunk dicts."""
        ...


# ---------------------------------------------------------------------------
# litellm provider
# ---------------------------------------------------------------------------


@dataclass
class LiteLLMProvider:
    """Unified LLM provider using litellm.

    API keys are read from the provider's usual environment variables
    (ANTHROPIC_API_KEY, OPENAI_API_KEY, ...) by litellm itself.
    """

    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    async def stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        constraints: GenerationConstraints | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream from litellm, yielding normalized chunk dicts."""
        kwargs = self._build_kwargs(messages, tools, constraints)
        response = await _acompletion_with_retry(**kwargs)

        async for chunk in response:  # type: ignore[union-attr]
            yield _chunk_to_dict(chunk)

    def _build_kwargs(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        constraints: GenerationConstraints | None,
    ) -> dict[str, Any]:
        constraints = constraints or GenerationConstraints()
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            kwargs["tools"] = tools
        if constraints.stop:
            kwargs["stop"] = list(constraints.stop)

        temperature = (
            constraints.temperature
            if constraints.temperature is not None
            else self._config.temperature
        )
        if temperature is not None:
            kwargs["temperature"] = temperature

        max_tokens = constraints.max_tokens or self._config.max_tokens
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        return kwargs


@retry(
    retry=retry_if_exception_type((ConnectionError, TimeoutError, OSError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _acompletion_with_retry(**kwargs: Any) -> CustomStreamWrapper | ModelResponse:
    """Call litellm.acompletion with retry on transient transport errors."""
    import litellm

    return await litellm.acompletion(**kwargs)


def _chunk_to_dict(chunk: ModelResponseStream) -> dict[str, Any]:
    """Convert a litellm stream chunk to the normalized dict."""
    result: dict[str, Any] = {"id": getattr(chunk, "id", "")}

    choices = getattr(chunk, "choices", None)
    if choices:
        choice = choices[0]
        delta = choice.delta
        result["finish_reason"] = choice.finish_reason
        result["delta"] = {}

        if delta.content is not None:
            result["delta"]["content"] = delta.content

        if delta.role is not None:
            result["delta"]["role"] = delta.role

        if delta.tool_calls:
            result["delta"]["tool_calls"] = [
                {
                    "index": tc.index,
                    "id": tc.id,
                    "function": {
                        "name": tc.function.name or None,
                        "arguments": tc.function.arguments,
                    }
                    if tc.function
                    else None,
                }
                for tc in delta.tool_calls
            ]
    else:
        result["finish_reason"] = None
        result["delta"] = {}

    usage = getattr(chunk, "usage", None)
    if usage:
        result["usage"] = {
            "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
            "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
            "total_tokens": getattr(usage, "total_tokens", 0) or 0,
        }

    return result


def create_provider(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> ChatProvider:
    """Create a LiteLLM provider.

    Args:
        model: Model name with provider prefix (e.g. "openai/gpt-4o",
               "anthropic/claude-sonnet-4-5-20250929").
        temperature: Default sampling temperature.
        max_tokens: Default max output tokens.
    """
    config = ProviderConfig(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return LiteLLMProvider(_config=config)
