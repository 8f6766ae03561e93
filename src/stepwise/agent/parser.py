"""Fallback action parser — recover one action from free model text.

Used only when the model returned no native tool calls. Two shapes are
recognized, tried in order:

    Thought: I should search.
    Action: {"name": "search", "arguments": {"query": "x"}}

    <tool_call>
    {"name": "search", "arguments": {"query": "x"}}
    </tool_call>
"""

from __future__ import annotations

import json
import logging

from stepwise.errors import ActionParseError, NoActionFound
from stepwise.llm.message import ActionRequest

logger = logging.getLogger(__name__)

ACTION_MARKER = "Action:"
TOOL_CALL_OPEN = "<tool_call>"
TOOL_CALL_CLOSE = "</tool_call>"


def _escape_newlines(candidate: str) -> str:
    """Escape raw CR/LF inside JSON string literals.

    Models put raw newlines inside string values, which JSON forbids.
    Newlines between tokens are whitespace and stay as they are, so
    pretty-printed objects still decode. A backslash right before a raw
    newline is kept as a literal backslash.
    """
    out = []
    in_string = False
    escaped = False
    for ch in candidate:
        if in_string:
            if ch in "\r\n":
                ch = ("\\" if escaped else "") + ("\\n" if ch == "\n" else "\\r")
                escaped = False
            elif escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def _from_marker(text: str) -> str | None:
    _, found, rest = text.partition(ACTION_MARKER)
    if not found:
        return None
    # Only the first action block counts
    rest = rest.split(ACTION_MARKER, 1)[0]
    start = rest.find("{")
    end = rest.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return rest[start : end + 1]


def _from_tags(text: str) -> str | None:
    _, found, rest = text.partition(TOOL_CALL_OPEN)
    if not found:
        return None
    body = rest.split(TOOL_CALL_CLOSE, 1)[0].strip()
    if body.startswith("{") and body.endswith("}"):
        return body
    return None


def extract_action_json(text: str) -> str | None:
    """Return the escaped JSON candidate, or ``None`` if there is none."""
    for strategy in (_from_marker, _from_tags):
        candidate = strategy(text)
        if candidate is not None:
            return _escape_newlines(candidate)
    return None


def parse_action(text: str) -> ActionRequest:
    """Parse one action out of free text.

    Raises ``NoActionFound`` when the text holds no action block and
    ``ActionParseError`` when it holds one that does not decode into an
    object with a string ``name`` and an ``arguments`` field.
    """
    candidate = extract_action_json(text)
    if candidate is None:
        raise NoActionFound("No valid action JSON found")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ActionParseError(f"Malformed action JSON: {e}") from e

    if not isinstance(data, dict):
        raise ActionParseError("Action JSON must be an object")
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ActionParseError("Action JSON is missing a string 'name'")
    if "arguments" not in data:
        raise ActionParseError(f"Action '{name}' is missing 'arguments'")

    logger.debug("Recovered action %s from free text", name)
    return ActionRequest(name=name, arguments=data["arguments"])
