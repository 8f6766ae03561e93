"""Tests for stepwise.llm.streaming (GenerateResult, assemble_messages, generate)."""

from __future__ import annotations

import pytest

from fakes import ScriptedProvider, text_turn, tool_turn
from stepwise.agent.catalog import ActionDescriptor
from stepwise.llm.message import Message, TextPart, ToolCallPart
from stepwise.llm.streaming import GenerateResult, assemble_messages, generate


# ---------------------------------------------------------------------------
# GenerateResult
# ---------------------------------------------------------------------------


class TestGenerateResult:
    def test_actions_empty(self) -> None:
        result = GenerateResult(message=Message.assistant("just text"))
        assert result.actions == []
        assert result.has_actions is False
        assert result.text == "just text"

    def test_actions_present(self) -> None:
        tc = ToolCallPart(id="tc1", name="search", arguments='{"q":"x"}')
        msg = Message(role="assistant", parts=[TextPart(text="ok"), tc])
        result = GenerateResult(message=msg)
        assert result.has_actions is True
        assert result.actions[0].name == "search"
        assert result.actions[0].arguments == {"q": "x"}
        assert result.actions[0].id == "tc1"

    def test_finish_reason_default(self) -> None:
        result = GenerateResult(message=Message.assistant("hi"))
        assert result.finish_reason is None


# ---------------------------------------------------------------------------
# assemble_messages
# ---------------------------------------------------------------------------


class TestAssembleMessages:
    def test_no_history(self) -> None:
        memory = [Message.system("sys"), Message.user("task")]
        assert assemble_messages(memory, None) == memory

    def test_history_after_system(self) -> None:
        memory = [Message.system("sys"), Message.user("task")]
        history = [Message.user("earlier")]
        merged = assemble_messages(memory, history)
        assert [m.text for m in merged] == ["sys", "earlier", "task"]

    def test_history_first_without_system(self) -> None:
        memory = [Message.user("task")]
        history = [Message.assistant("earlier")]
        merged = assemble_messages(memory, history)
        assert [m.text for m in merged] == ["earlier", "task"]


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


class TestGenerate:
    async def test_accumulates_text(self) -> None:
        seen: list[str] = []
        provider = ScriptedProvider([text_turn("Hello there, world", pieces=4)])
        result = await generate(provider, [Message.user("hi")], on_text=seen.append)
        assert result.text == "Hello there, world"
        assert "".join(seen) == "Hello there, world"
        assert len(seen) > 1
        assert result.finish_reason == "stop"
        assert result.has_actions is False

    async def test_accumulates_tool_call_fragments(self) -> None:
        turn = [
            {
                "delta": {
                    "tool_calls": [
                        {"index": 0, "id": "c1", "function": {"name": "search", "arguments": '{"q": '}}
                    ]
                }
            },
            {"delta": {"tool_calls": [{"index": 0, "function": {"arguments": '"x"}'}}]}},
            {"delta": {}, "finish_reason": "tool_calls"},
        ]
        provider = ScriptedProvider([turn])
        result = await generate(provider, [Message.user("hi")])
        assert len(result.actions) == 1
        assert result.actions[0].name == "search"
        assert result.actions[0].arguments == {"q": "x"}

    async def test_multiple_calls_keep_index_order(self) -> None:
        provider = ScriptedProvider([tool_turn(("a", {}), ("b", {"n": 2}))])
        result = await generate(provider, [Message.user("hi")])
        assert [a.name for a in result.actions] == ["a", "b"]
        assert result.usage.total_tokens == 15

    async def test_catalog_sent_as_tools(self) -> None:
        catalog = [ActionDescriptor(name="search", description="Search the web")]
        provider = ScriptedProvider([text_turn("ok")])
        await generate(provider, [Message.user("hi")], catalog=catalog)
        tools = provider.calls[0]["tools"]
        assert tools[0]["type"] == "function"
        assert tools[0]["function"]["name"] == "search"

    async def test_no_catalog_sends_no_tools(self) -> None:
        provider = ScriptedProvider([text_turn("ok")])
        await generate(provider, [Message.user("hi")])
        assert provider.calls[0]["tools"] is None

    async def test_provider_error_propagates(self) -> None:
        provider = ScriptedProvider([RuntimeError("rate limited")])
        with pytest.raises(RuntimeError, match="rate limited"):
            await generate(provider, [Message.user("hi")])
