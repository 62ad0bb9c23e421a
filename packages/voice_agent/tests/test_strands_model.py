from __future__ import annotations

from typing import Any

import pytest

from voice_agent.errors import ModelCallError
from voice_agent.llm.codec import convert_to_strands_messages
from voice_agent.llm.strands_model import StrandsChatModel, StreamAccumulator
from voice_agent.llm.types import ChatOptions, Message, ToolCall, ToolDefinition

TOOL_USE_EVENTS: list[dict[str, Any]] = [
    {"contentBlockDelta": {"delta": {"text": "Let me "}}},
    {"contentBlockDelta": {"delta": {"text": "check."}}},
    {"contentBlockStop": {}},
    {"contentBlockStart": {"start": {"toolUse": {"toolUseId": "t1", "name": "weather"}}}},
    {"contentBlockDelta": {"delta": {"toolUse": {"input": '{"city": '}}}},
    {"contentBlockDelta": {"delta": {"toolUse": {"input": '"Oslo"}'}}}},
    {"contentBlockStop": {}},
    {"messageStop": {"stopReason": "tool_use"}},
    {"metadata": {"usage": {"inputTokens": 12, "outputTokens": 4, "totalTokens": 16}}},
]


class FakeStrandsModel:
    def __init__(self, events: list[dict[str, Any]], error: Exception | None = None) -> None:
        self.events = events
        self.error = error
        self.config: dict[str, Any] = {"model_id": "base", "params": {"max_tokens": 1024}}
        self.config_updates: list[dict[str, Any]] = []
        self.requests: list[dict[str, Any]] = []

    def get_config(self) -> dict[str, Any]:
        return dict(self.config)

    def update_config(self, **kwargs: Any) -> None:
        self.config_updates.append(kwargs)
        self.config.update(kwargs)

    async def stream(self, messages, tool_specs=None, system_prompt=None, **kwargs):
        self.requests.append(
            {"messages": messages, "tool_specs": tool_specs, "system_prompt": system_prompt}
        )
        for event in self.events:
            yield event
        if self.error is not None:
            raise self.error


def test_accumulator_collects_text_tool_calls_and_usage() -> None:
    accumulator = StreamAccumulator()
    for event in TOOL_USE_EVENTS:
        accumulator.add(event)

    response = accumulator.to_response()

    assert response.content == "Let me check."
    assert response.tool_calls == (ToolCall(id="t1", name="weather", arguments={"city": "Oslo"}),)
    assert response.finish_reason == "tool_calls"
    assert response.usage is not None
    assert response.usage.input_tokens == 12


def test_accumulator_discards_malformed_tool_input() -> None:
    accumulator = StreamAccumulator()
    accumulator.add({"contentBlockStart": {"start": {"toolUse": {"toolUseId": "x", "name": "n"}}}})
    accumulator.add({"contentBlockDelta": {"delta": {"toolUse": {"input": "{not json"}}}})
    accumulator.add({"contentBlockStop": {}})

    (call,) = accumulator.to_response().tool_calls

    assert call.arguments == {}


def test_accumulator_maps_max_tokens_to_length() -> None:
    accumulator = StreamAccumulator()
    accumulator.add({"contentBlockDelta": {"delta": {"text": "truncated"}}})
    accumulator.add({"messageStop": {"stopReason": "max_tokens"}})

    assert accumulator.to_response().finish_reason == "length"


def test_codec_merges_tool_results_and_extracts_system_prompt() -> None:
    messages = [
        Message.system("Be brief."),
        Message.system("Speak English."),
        Message.user("Weather in Oslo and Rome?"),
        Message.assistant(
            "",
            (
                ToolCall(id="a", name="weather", arguments={"city": "Oslo"}),
                ToolCall(id="b", name="weather", arguments={"city": "Rome"}),
            ),
        ),
        Message.tool("a", "Error: none, skies are clear"),
        Message.tool("b", "service down", is_error=True),
        Message.assistant("Oslo is sunny."),
    ]

    converted, system_prompt = convert_to_strands_messages(messages)

    assert system_prompt == "Be brief.\n\nSpeak English."
    assert [m["role"] for m in converted] == ["user", "assistant", "user", "assistant"]
    results = [block["toolResult"] for block in converted[2]["content"]]
    assert [r["toolUseId"] for r in results] == ["a", "b"]
    assert [r["status"] for r in results] == ["success", "error"]
    assert converted[1]["content"][0]["toolUse"]["input"] == {"city": "Oslo"}


def test_codec_skips_empty_user_text() -> None:
    converted, system_prompt = convert_to_strands_messages([Message.user(""), Message.user("hi")])

    assert system_prompt is None
    assert converted == [{"role": "user", "content": [{"text": "hi"}]}]


@pytest.mark.asyncio
async def test_chat_streams_and_passes_tool_specs() -> None:
    fake = FakeStrandsModel(TOOL_USE_EVENTS)
    model = StrandsChatModel(fake, "claude-test")
    tools = [ToolDefinition("weather", "Weather lookup.", {"type": "object", "properties": {}})]

    response = await model.chat([Message.system("sys"), Message.user("hi")], tools)

    assert response.tool_calls[0].name == "weather"
    request = fake.requests[0]
    assert request["system_prompt"] == "sys"
    assert request["tool_specs"][0]["inputSchema"] == {"json": {"type": "object", "properties": {}}}
    assert fake.config_updates == []


@pytest.mark.asyncio
async def test_chat_without_tools_sends_no_specs() -> None:
    fake = FakeStrandsModel([{"contentBlockDelta": {"delta": {"text": "ok"}}}])

    response = await StrandsChatModel(fake, "m").chat([Message.user("hi")], [])

    assert response.content == "ok"
    assert fake.requests[0]["tool_specs"] is None


@pytest.mark.asyncio
async def test_chat_applies_model_and_option_overrides() -> None:
    fake = FakeStrandsModel([])
    model = StrandsChatModel(fake, "base")

    await model.chat(
        [Message.user("hi")],
        [],
        model="override",
        options=ChatOptions(max_tokens=256, temperature=0.2),
    )

    assert fake.config_updates[0] == {
        "model_id": "override",
        "params": {"max_tokens": 256, "temperature": 0.2},
    }
    assert fake.config == {"model_id": "base", "params": {"max_tokens": 1024}}
    assert model.default_model == "base"


@pytest.mark.asyncio
async def test_chat_restores_config_after_failed_call() -> None:
    fake = FakeStrandsModel([], error=RuntimeError("boom"))
    model = StrandsChatModel(fake, "base")

    with pytest.raises(ModelCallError):
        await model.chat([Message.user("hi")], [], model="override")

    assert fake.config["model_id"] == "base"
    assert fake.config_updates == [{"model_id": "override"}, {"model_id": "base"}]


@pytest.mark.asyncio
async def test_chat_wraps_provider_errors() -> None:
    fake = FakeStrandsModel([], error=RuntimeError("connection reset"))

    with pytest.raises(ModelCallError, match="Model call failed: connection reset"):
        await StrandsChatModel(fake, "m").chat([Message.user("hi")], [])
