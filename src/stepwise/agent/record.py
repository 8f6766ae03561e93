"""Step record — what one think/act/observe iteration produced."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stepwise.llm.message import ActionRequest, Message, TokenUsage


@dataclass
class StepRecord:
    """Accumulator for a single step.

    Created empty by the caller, filled in by ``run_step`` and then left
    alone: the core never touches a record after the step returns.

    ``actions`` is ``None`` when the model requested nothing. A record
    with ``final_answer`` set is terminal; otherwise its ``observations``
    feed the next step's memory.
    """

    step_number: int
    agent_memory: list[Message] | None = None
    llm_output: str | None = None
    actions: list[ActionRequest] | None = None
    observations: list[str] = field(default_factory=list)
    final_answer: str | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    started_at: str | None = None
    ended_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.final_answer is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_number": self.step_number,
            "agent_memory": (
                [m.to_dict() for m in self.agent_memory]
                if self.agent_memory is not None
                else None
            ),
            "llm_output": self.llm_output,
            "actions": (
                [a.to_dict() for a in self.actions] if self.actions is not None else None
            ),
            "observations": list(self.observations),
            "final_answer": self.final_answer,
            "usage": {
                "input_tokens": self.usage.input_tokens,
                "output_tokens": self.usage.output_tokens,
                "total_tokens": self.usage.total_tokens,
            },
            "started_at": self.started_at,
            "ended_at": self.ended_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepRecord:
        memory = data.get("agent_memory")
        actions = data.get("actions")
        return cls(
            step_number=data["step_number"],
            agent_memory=(
                [Message.from_dict(m) for m in memory] if memory is not None else None
            ),
            llm_output=data.get("llm_output"),
            actions=(
                [ActionRequest.from_dict(a) for a in actions]
                if actions is not None
                else None
            ),
            observations=list(data.get("observations", [])),
            final_answer=data.get("final_answer"),
            usage=TokenUsage(**data.get("usage", {})),
            started_at=data.get("started_at"),
            ended_at=data.get("ended_at"),
        )
