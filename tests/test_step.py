"""Tests for stepwise.agent.step (one think/act/observe iteration)."""

from __future__ import annotations

import asyncio

import pytest

from fakes import FakeAgent, FakeTool, ScriptedProvider, text_turn, tool_turn
from stepwise.agent.record import StepRecord
from stepwise.agent.registry import AgentRegistry
from stepwise.agent.step import NO_ACTION_OBSERVATION, run_step
from stepwise.errors import (
    ActionParseError,
    ConfigurationError,
    DelegationError,
    ToolCallError,
)
from stepwise.llm.message import Message
from stepwise.session.wire import EventType, Wire
from stepwise.tool import truncation
from stepwise.tool.builtin import FinalAnswerTool, ThinkTool
from stepwise.tool.registry import ToolRegistry


def _registry(*tools: FakeTool) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_many([*tools, FinalAnswerTool()])
    return registry


def _agents(*agents: FakeAgent) -> AgentRegistry:
    registry = AgentRegistry()
    for agent in agents:
        registry.register(agent)
    return registry


MEMORY = [Message.system("You are helpful."), Message.user("New task:\nDo it")]


async def _step(provider, tools, agents=None, **kwargs) -> StepRecord:
    record = StepRecord(step_number=1)
    return await run_step(
        record,
        provider=provider,
        memory=MEMORY,
        tools=tools,
        agents=agents,
        agent_name="root",
        **kwargs,
    )


def _drain(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


# ---------------------------------------------------------------------------
# Final answers
# ---------------------------------------------------------------------------


class TestFinalAnswer:
    async def test_final_answer_tool_ends_step(self) -> None:
        provider = ScriptedProvider([tool_turn(("final_answer", {"answer": "42"}))])
        record = await _step(provider, _registry())
        assert record.is_terminal
        assert record.final_answer == "42"
        assert record.observations == ["42"]

    async def test_final_answer_short_circuits_other_actions(self) -> None:
        before = FakeTool("before")
        after = FakeTool("after")
        provider = ScriptedProvider(
            [
                tool_turn(
                    ("before", {}),
                    ("final_answer", {"answer": "stop here"}),
                    ("after", {}),
                )
            ]
        )
        record = await _step(provider, _registry(before, after))
        assert record.final_answer == "stop here"
        assert record.observations == ["stop here"]
        assert before.calls == []
        assert after.calls == []
        assert [a.name for a in record.actions] == ["before", "final_answer", "after"]

    async def test_free_text_is_final_answer(self) -> None:
        provider = ScriptedProvider([text_turn("The capital of France is Paris.", 3)])
        record = await _step(provider, _registry())
        assert record.actions is None
        assert record.final_answer == "The capital of France is Paris."
        assert record.observations == ["The capital of France is Paris."]
        assert record.llm_output == "The capital of France is Paris."

    async def test_final_answer_written_as_action_text(self) -> None:
        provider = ScriptedProvider(
            [
                text_turn(
                    'Thought: done.\nAction: {"name": "final_answer", '
                    '"arguments": {"answer": "This is the final answer"}}'
                )
            ]
        )
        record = await _step(provider, _registry())
        assert record.final_answer == "This is the final answer"
        assert [a.name for a in record.actions] == ["final_answer"]

    async def test_long_final_answer_not_truncated(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(truncation, "OUTPUT_DIR", str(tmp_path))
        answer = "\n".join(f"row {i}" for i in range(3000))
        provider = ScriptedProvider([tool_turn(("final_answer", {"answer": answer}))])
        record = await _step(provider, _registry())
        assert record.final_answer == answer
        assert list(tmp_path.iterdir()) == []

    async def test_invalid_final_answer_arguments_abort(self) -> None:
        provider = ScriptedProvider([tool_turn(("final_answer", {"wrong": 1}))])
        with pytest.raises(ToolCallError):
            await _step(provider, _registry())


# ---------------------------------------------------------------------------
# Non-terminal steps
# ---------------------------------------------------------------------------


class TestObservations:
    async def test_blank_text_gets_synthetic_observation(self) -> None:
        provider = ScriptedProvider([text_turn("   \n ")])
        record = await _step(provider, _registry())
        assert not record.is_terminal
        assert record.actions is None
        assert record.observations == [NO_ACTION_OBSERVATION]

    async def test_empty_turn_gets_synthetic_observation(self) -> None:
        provider = ScriptedProvider([text_turn("")])
        record = await _step(provider, _registry())
        assert record.observations == [NO_ACTION_OBSERVATION]
        assert record.llm_output == ""

    async def test_text_action_runs_tool(self) -> None:
        search = FakeTool("search", output="result")
        provider = ScriptedProvider(
            [text_turn('Action: {"name": "search", "arguments": {"query": "weather"}}')]
        )
        record = await _step(provider, _registry(search))
        assert not record.is_terminal
        assert record.observations == ["result"]
        assert search.calls == [{"query": "weather"}]
        assert len(record.actions) == 1

    async def test_structured_calls_win_over_text(self) -> None:
        a = FakeTool("a", output="from a")
        b = FakeTool("b", output="from b")
        provider = ScriptedProvider(
            [tool_turn(("a", {}), text='Action: {"name": "b", "arguments": {}}')]
        )
        record = await _step(provider, _registry(a, b))
        assert record.observations == ["from a"]
        assert b.calls == []

    async def test_one_observation_per_tool_even_on_failure(self) -> None:
        ok = FakeTool("ok", output="fine")
        soft = FakeTool("soft", fail="boom")
        hard = FakeTool("hard", raises=RuntimeError("kaput"))
        provider = ScriptedProvider(
            [tool_turn(("ok", {}), ("soft", {}), ("hard", {}), ("missing", {}))]
        )
        record = await _step(provider, _registry(ok, soft, hard))
        assert len(record.observations) == 4
        assert record.observations[0] == "fine"
        assert record.observations[1] == "boom"
        assert "kaput" in record.observations[2]
        assert record.observations[3].startswith("Unknown tool: missing")
        assert not record.is_terminal

    async def test_invalid_tool_arguments_become_observation(self) -> None:
        registry = _registry()
        registry.register(ThinkTool())
        provider = ScriptedProvider([tool_turn(("think", {}))])
        record = await _step(provider, registry)
        assert record.observations[0].startswith("Invalid parameters for think")
        assert not record.is_terminal

    async def test_malformed_text_action_aborts(self) -> None:
        provider = ScriptedProvider([text_turn('Action: {"name": "x", "arguments": }')])
        with pytest.raises(ActionParseError):
            await _step(provider, _registry())


# ---------------------------------------------------------------------------
# Ordering and concurrency
# ---------------------------------------------------------------------------


class TestDispatchOrder:
    async def test_delegations_then_tools_in_request_order(self) -> None:
        t1 = FakeTool("t1", output="one", delay=0.06)
        t2 = FakeTool("t2", output="two", delay=0.04)
        t3 = FakeTool("t3", output="three", delay=0.01)
        d1 = FakeAgent("d1", answer="first agent")
        d2 = FakeAgent("d2", answer="second agent")
        provider = ScriptedProvider(
            [
                tool_turn(
                    ("t1", {}),
                    ("d1", {"task": "a"}),
                    ("t2", {}),
                    ("d2", {"task": "b"}),
                    ("t3", {}),
                )
            ]
        )
        record = await _step(provider, _registry(t1, t2, t3), _agents(d1, d2))
        assert record.observations == [
            "first agent",
            "second agent",
            "one",
            "two",
            "three",
        ]
        assert t3.finished_at < t2.finished_at < t1.finished_at
        assert d1.finished_at <= d2.started_at <= t3.finished_at

    async def test_tools_run_concurrently(self) -> None:
        tools = [FakeTool(f"slow{i}", delay=0.2) for i in range(3)]
        provider = ScriptedProvider([tool_turn(*((t.name, {}) for t in tools))])
        loop = asyncio.get_running_loop()
        start = loop.time()
        record = await _step(provider, _registry(*tools))
        assert loop.time() - start < 0.5
        assert record.observations == ["ok", "ok", "ok"]

    async def test_tool_timeout_becomes_observation(self) -> None:
        slow = FakeTool("slow", delay=1.0)
        fast = FakeTool("fast", output="quick")
        provider = ScriptedProvider([tool_turn(("slow", {}), ("fast", {}))])
        record = await _step(provider, _registry(slow, fast), tool_timeout=0.05)
        assert record.observations == ["Tool slow timed out after 0.05s", "quick"]


# ---------------------------------------------------------------------------
# Delegation
# ---------------------------------------------------------------------------


class TestDelegation:
    async def test_delegation_runs_with_reset(self) -> None:
        researcher = FakeAgent("researcher", answer="findings")
        provider = ScriptedProvider([tool_turn(("researcher", {"task": "dig"}))])
        record = await _step(provider, _registry(), _agents(researcher))
        assert record.observations == ["findings"]
        assert researcher.calls == [("dig", True)]

    async def test_delegations_run_one_after_another(self) -> None:
        d1 = FakeAgent("d1", answer="first", delay=0.03)
        d2 = FakeAgent("d2", answer="second", delay=0.03)
        provider = ScriptedProvider(
            [
                tool_turn(
                    ("d1", {"task": "a"}),
                    ("d2", {"task": "b"}),
                    ("d1", {"task": "c"}),
                )
            ]
        )
        record = await _step(provider, _registry(), _agents(d1, d2))
        assert record.observations == ["first", "second", "first"]
        assert d1.calls == [("a", True), ("c", True)]
        assert not d1.overlapped
        assert not d2.overlapped
        # d1's timestamps belong to its second run, which starts after d2 ends
        assert d2.finished_at <= d1.started_at

    async def test_delegation_failure_aborts_step(self) -> None:
        broken = FakeAgent("broken", raises=RuntimeError("no model"))
        provider = ScriptedProvider([tool_turn(("broken", {"task": "x"}))])
        with pytest.raises(DelegationError) as exc_info:
            await _step(provider, _registry(), _agents(broken))
        assert exc_info.value.agent == "broken"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_delegation_without_task(self) -> None:
        helper = FakeAgent("helper")
        provider = ScriptedProvider([tool_turn(("helper", {"topic": "x"}))])
        record = await _step(provider, _registry(), _agents(helper))
        assert helper.calls == []
        assert record.observations == [
            "Agent 'helper' was not run: expected a string 'task' argument."
        ]

    async def test_catalog_lists_tools_then_agents(self) -> None:
        provider = ScriptedProvider([text_turn("done")])
        await _step(
            provider,
            _registry(FakeTool("search")),
            _agents(FakeAgent("helper", description="Helps out")),
        )
        specs = provider.calls[0]["tools"]
        names = [s["function"]["name"] for s in specs]
        assert names == ["search", "final_answer", "helper"]
        assert specs[-1]["function"]["description"] == "Helps out"
        assert specs[-1]["function"]["parameters"]["required"] == ["task"]


# ---------------------------------------------------------------------------
# Failures and bookkeeping
# ---------------------------------------------------------------------------


class TestStepLifecycle:
    async def test_model_error_propagates(self) -> None:
        provider = ScriptedProvider([ConnectionError("provider down")])
        record = StepRecord(step_number=1)
        with pytest.raises(ConnectionError):
            await run_step(record, provider=provider, memory=MEMORY, tools=_registry())
        assert record.ended_at is not None
        assert record.agent_memory == MEMORY

    async def test_configuration_error_before_model_call(self) -> None:
        provider = ScriptedProvider([text_turn("unused")])
        with pytest.raises(ConfigurationError):
            await _step(provider, _registry(FakeTool("")))
        assert provider.calls == []

    async def test_stop_sequence_default(self) -> None:
        provider = ScriptedProvider([text_turn("done")])
        await _step(provider, _registry())
        assert provider.calls[0]["constraints"].stop == ["Observation:"]

    async def test_history_follows_system_prompt(self) -> None:
        provider = ScriptedProvider([text_turn("done")])
        history = [Message.user("Earlier question"), Message.assistant("Earlier answer")]
        record = await _step(provider, _registry(), history=history)
        sent = provider.calls[0]["messages"]
        assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
        assert sent[1]["content"] == "Earlier question"
        assert record.agent_memory == MEMORY

    async def test_record_bookkeeping(self) -> None:
        provider = ScriptedProvider([tool_turn(("final_answer", {"answer": "x"}))])
        record = await _step(provider, _registry())
        assert record.started_at is not None
        assert record.ended_at is not None
        assert record.usage.total_tokens == 15

    async def test_wire_events(self) -> None:
        wire = Wire()
        queue = wire.subscribe()
        search = FakeTool("search", output="result")
        provider = ScriptedProvider([tool_turn(("search", {"q": "x"}), text="Looking")])
        await _step(provider, _registry(search), wire=wire)
        types = [e.type for e in _drain(queue)]
        assert types == [
            EventType.STEP_BEGIN,
            EventType.MEMORY,
            EventType.TEXT,
            EventType.TOOL_CALL,
            EventType.TOOL_BEGIN,
            EventType.TOOL_RESULT,
            EventType.STEP_END,
        ]
