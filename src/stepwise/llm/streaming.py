"""Model invocation — fold one streamed completion into a turn result."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from stepwise.llm.message import (
    ActionRequest,
    ContentPart,
    Message,
    TextPart,
    TokenUsage,
    ToolCallPart,
)
from stepwise.llm.provider import ChatProvider, GenerationConstraints

if TYPE_CHECKING:
    from stepwise.agent.catalog import ActionDescriptor

logger = logging.getLogger(__name__)

OnText = Callable[[str], None] | None


@dataclass
class GenerateResult:
    """What the model produced in one turn: free text and/or action requests."""

    message: Message
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: str | None = None

    @property
    def text(self) -> str:
        return self.message.text

    @property
    def actions(self) -> list[ActionRequest]:
        return self.message.actions

    @property
    def has_actions(self) -> bool:
        return any(isinstance(p, ToolCallPart) for p in self.message.parts)


def assemble_messages(
    memory: Sequence[Message], history: Sequence[Message] | None = None
) -> list[Message]:
    """Merge the auxiliary history into the memory snapshot.

    A leading system message stays first; history goes right after it.
    """
    if not history:
        return list(memory)
    if memory and memory[0].role == "system":
        return [memory[0], *history, *memory[1:]]
    return [*history, *memory]


async def generate(
    provider: ChatProvider,
    memory: Sequence[Message],
    history: Sequence[Message] | None = None,
    catalog: Sequence[ActionDescriptor] | None = None,
    constraints: GenerationConstraints | None = None,
    on_text: OnText = None,
) -> GenerateResult:
    """Stream one LLM response and accumulate it into a single assistant message.

    Provider errors are not caught here: they abort the step.
    """
    api_messages = [m.to_openai_dict() for m in assemble_messages(memory, history)]
    tools = [d.to_openai_spec() for d in catalog] if catalog else None

    text_buffer = ""
    tool_call_buffers: dict[int, dict[str, str]] = {}  # index -> {id, name, arguments}
    usage = TokenUsage()
    finish_reason = None

    async for chunk in provider.stream(api_messages, tools, constraints):
        fr = chunk.get("finish_reason")
        if fr:
            finish_reason = fr

        delta = chunk.get("delta", {})

        content = delta.get("content")
        if content:
            text_buffer += content
            if on_text:
                on_text(content)
                # Let wire consumers run between chunks.
                await asyncio.sleep(0)

        for tc_delta in delta.get("tool_calls") or []:
            idx = tc_delta.get("index", 0)
            buf = tool_call_buffers.setdefault(
                idx, {"id": "", "name": "", "arguments": ""}
            )
            if tc_delta.get("id"):
                buf["id"] = tc_delta["id"]
            func = tc_delta.get("function") or {}
            if func.get("name"):
                buf["name"] = func["name"]
            if func.get("arguments"):
                buf["arguments"] += func["arguments"]

        if chunk.get("usage"):
            u = chunk["usage"]
            usage = TokenUsage(
                input_tokens=u.get("prompt_tokens", 0),
                output_tokens=u.get("completion_tokens", 0),
                total_tokens=u.get("total_tokens", 0),
            )

    parts: list[ContentPart] = []
    if text_buffer:
        parts.append(TextPart(text=text_buffer))
    for idx in sorted(tool_call_buffers):
        buf = tool_call_buffers[idx]
        parts.append(
            ToolCallPart(id=buf["id"], name=buf["name"], arguments=buf["arguments"])
        )

    logger.debug(
        "Model turn: %d chars of text, %d tool calls, finish_reason=%s",
        len(text_buffer),
        len(tool_call_buffers),
        finish_reason,
    )
    return GenerateResult(
        message=Message(role="assistant", parts=parts),
        usage=usage,
        finish_reason=finish_reason,
    )
