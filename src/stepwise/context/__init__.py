"""Step log — JSONL-backed StepRecords and the memory built from them."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles

from stepwise.agent.parser import ACTION_MARKER, TOOL_CALL_OPEN
from stepwise.agent.record import StepRecord
from stepwise.llm.message import ActionRequest, Message

logger = logging.getLogger(__name__)

OBSERVATION_PREFIX = "Observation:"


@dataclass
class StepLog:
    """Ordered StepRecords of one agent run.

    With a ``path`` every appended record is also written as a JSON line;
    without one the log lives in memory only (the default for sub-agents).
    """

    path: Path | None = None
    records: list[StepRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.path is not None:
            self.path = Path(self.path)
            self.path.parent.mkdir(parents=True, exist_ok=True)

    async def append(self, record: StepRecord) -> None:
        """Append a finished record and persist it."""
        self.records.append(record)
        if self.path is not None:
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")

    async def reset(self) -> None:
        """Forget every record. An existing file is rotated to a backup."""
        self.records = []
        if self.path is not None and self.path.exists():
            backup = self.path.with_suffix(f".{int(time.time())}.bak")
            self.path.rename(backup)
            logger.info("Step log rotated to %s", backup)

    @property
    def final_answer(self) -> str | None:
        for record in reversed(self.records):
            if record.is_terminal:
                return record.final_answer
        return None

    def to_messages(self, system_prompt: str, task: str) -> list[Message]:
        """Build the conversation memory for the next step."""
        messages: list[Message] = []
        if system_prompt:
            messages.append(Message.system(system_prompt))
        if task:
            messages.append(Message.user(f"New task:\n{task}"))

        for record in self.records:
            content = _render_assistant_turn(record)
            if content:
                messages.append(Message.assistant(content))
            if record.is_terminal:
                continue
            for obs in record.observations:
                messages.append(Message.user(f"{OBSERVATION_PREFIX} {obs}"))

        return messages

    def __len__(self) -> int:
        return len(self.records)

    @classmethod
    async def restore(cls, path: Path) -> StepLog:
        """Restore a step log from a JSONL file."""
        log = cls(path=path)
        if not Path(path).exists():
            return log

        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            async for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed JSONL line in %s", path)
                    continue
                log.records.append(StepRecord.from_dict(data))

        return log


def _render_action(action: ActionRequest) -> str:
    payload = {"name": action.name, "arguments": action.arguments}
    return f"{ACTION_MARKER} {json.dumps(payload, ensure_ascii=False)}"


def _render_assistant_turn(record: StepRecord) -> str:
    """The model's text plus its native tool calls written as ``Action:`` lines.

    Actions the model already wrote in its text are not repeated.
    """
    text = (record.llm_output or "").strip()
    if not record.actions or ACTION_MARKER in text or TOOL_CALL_OPEN in text:
        return text
    rendered = "\n".join(_render_action(a) for a in record.actions)
    return f"{text}\n{rendered}" if text else rendered
