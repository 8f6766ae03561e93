"""Message and action types shared by the model adapter and the step core."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

logger = logging.getLogger(__name__)


def new_call_id() -> str:
    """Generate a fresh action identifier."""
    return f"call_{uuid.uuid4().hex[:24]}"


@dataclass
class TextPart:
    """A text content part."""

    type: Literal["text"] = "text"
    text: str = ""


@dataclass
class ToolCallPart:
    """A tool call content part, as streamed by the provider."""

    type: Literal["tool_call"] = "tool_call"
    id: str = ""
    name: str = ""
    arguments: str = ""  # JSON string


ContentPart = TextPart | ToolCallPart


@dataclass
class ActionRequest:
    """One named action the model asked for.

    ``arguments`` is whatever JSON value the model produced; validating it
    is the target tool's job.
    """

    name: str
    arguments: Any = field(default_factory=dict)
    id: str = field(default_factory=new_call_id)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActionRequest:
        return cls(
            name=data.get("name", ""),
            arguments=data.get("arguments", {}),
            id=data.get("id") or new_call_id(),
        )


@dataclass
class TokenUsage:
    """Token usage stats from an LLM call."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Message:
    """A conversation message with typed content parts."""

    role: Literal["system", "user", "assistant"]
    parts: list[ContentPart] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Get concatenated text content."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def actions(self) -> list[ActionRequest]:
        """Decode the tool call parts of this message into action requests.

        Arguments that are not valid JSON decode to ``{}`` so the tool's
        own validation reports the problem as an observation.
        """
        actions = []
        for p in self.parts:
            if not isinstance(p, ToolCallPart):
                continue
            try:
                args = json.loads(p.arguments) if p.arguments else {}
            except json.JSONDecodeError:
                logger.warning(
                    "Failed to parse tool call arguments for %s: %s",
                    p.name,
                    p.arguments[:200],
                )
                args = {}
            actions.append(ActionRequest(name=p.name, arguments=args, id=p.id or new_call_id()))
        return actions

    # --- Convenience constructors ---

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role="system", parts=[TextPart(text=text)])

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", parts=[TextPart(text=text)])

    @classmethod
    def assistant(
        cls, text: str = "", tool_calls: list[ToolCallPart] | None = None
    ) -> Message:
        parts: list[ContentPart] = []
        if text:
            parts.append(TextPart(text=text))
        if tool_calls:
            parts.extend(tool_calls)
        return cls(role="assistant", parts=parts)

    def to_openai_dict(self) -> dict[str, Any]:
        """Convert to OpenAI chat format (the shape litellm expects)."""
        if self.role == "assistant":
            result: dict[str, Any] = {"role": "assistant"}
            tc_parts = [p for p in self.parts if isinstance(p, ToolCallPart)]
            result["content"] = self.text or None
            if tc_parts:
                result["tool_calls"] = [
                    {
                        "id": p.id,
                        "type": "function",
                        "function": {"name": p.name, "arguments": p.arguments},
                    }
                    for p in tc_parts
                ]
            return result

        return {"role": self.role, "content": self.text}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSONL storage."""
        result: dict[str, Any] = {"role": self.role}
        text = self.text
        if text:
            result["content"] = text
        tc_parts = [p for p in self.parts if isinstance(p, ToolCallPart)]
        if tc_parts:
            result["tool_calls"] = [
                {"id": p.id, "name": p.name, "arguments": p.arguments} for p in tc_parts
            ]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        role = data["role"]
        parts: list[ContentPart] = []
        if data.get("content"):
            parts.append(TextPart(text=data["content"]))
        for tc in data.get("tool_calls", []):
            parts.append(
                ToolCallPart(
                    id=tc.get("id", ""),
                    name=tc.get("name", ""),
                    arguments=tc.get("arguments", ""),
                )
            )
        return cls(role=role, parts=parts)
