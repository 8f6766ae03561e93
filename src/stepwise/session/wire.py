"""Wire protocol — decouples step execution from whoever is watching.

Events flow from the step core to subscribers (CLI printer, tests,
tracing exporters). Sending never blocks, so a slow or absent consumer
cannot change what a step does.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class EventType(enum.Enum):
    RUN_BEGIN = "run_begin"
    RUN_END = "run_end"
    STEP_BEGIN = "step_begin"
    STEP_END = "step_end"
    MEMORY = "memory"
    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_BEGIN = "tool_begin"
    TOOL_RESULT = "tool_result"
    SUBAGENT_BEGIN = "subagent_begin"
    SUBAGENT_END = "subagent_end"
    FINAL_ANSWER = "final_answer"
    ERROR = "error"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Wire:
    """Async message bus: step core -> subscribers.

    Single-producer, multi-consumer broadcast.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._closed: bool = False

    def send(self, event: WireEvent) -> None:
        """Send an event to all subscribers.

        Silently drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        for q in self._subscribers:
            q.put_nowait(event)

    def emit(self, type: EventType, **data: Any) -> None:
        self.send(WireEvent(type=type, data=data))

    def send_text(self, text: str, agent: str = "") -> None:
        self.emit(EventType.TEXT, text=text, agent=agent)

    def send_error(self, error: str, agent: str = "") -> None:
        self.emit(EventType.ERROR, error=error, agent=agent)

    def step_begin(self, step: int, agent: str) -> None:
        self.emit(EventType.STEP_BEGIN, step=step, agent=agent, started_at=utc_now())

    def step_end(self, step: int, agent: str, terminal: bool, ended_at: str) -> None:
        self.emit(
            EventType.STEP_END,
            step=step,
            agent=agent,
            terminal=terminal,
            ended_at=ended_at,
        )

    def memory(self, step: int, agent: str, messages: list[dict[str, Any]]) -> None:
        self.emit(EventType.MEMORY, step=step, agent=agent, messages=messages)

    def tool_calls(self, step: int, agent: str, actions: list[dict[str, Any]]) -> None:
        self.emit(EventType.TOOL_CALL, step=step, agent=agent, actions=actions)

    def tool_begin(self, agent: str, call_id: str, name: str, arguments: Any) -> None:
        self.emit(
            EventType.TOOL_BEGIN,
            agent=agent,
            id=call_id,
            name=name,
            arguments=arguments,
        )

    def tool_result(
        self, agent: str, call_id: str, name: str, content: str, is_error: bool
    ) -> None:
        self.emit(
            EventType.TOOL_RESULT,
            agent=agent,
            id=call_id,
            name=name,
            content=content[:500],
            is_error=is_error,
        )

    def subagent_begin(self, agent: str, subagent: str, task: str) -> None:
        self.emit(EventType.SUBAGENT_BEGIN, agent=agent, subagent=subagent, task=task)

    def subagent_end(self, agent: str, subagent: str, result: str) -> None:
        self.emit(
            EventType.SUBAGENT_END,
            agent=agent,
            subagent=subagent,
            result=result[:500],
        )

    def final_answer(self, agent: str, answer: str) -> None:
        self.emit(EventType.FINAL_ANSWER, agent=agent, answer=answer)

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)
