from __future__ import annotations

import pytest
from fakes import ScriptedModel, call_response, text_response

from voice_agent.store.rules import NotificationRule
from voice_agent.subagents.notification import (
    NO_MATCH_SENTINEL,
    NotificationEvent,
    build_triage_message,
    run_notification_subagent,
    triage_tools,
)
from voice_agent.tools.base import FunctionTool
from voice_agent.tools.registry import ToolRegistry


def _rule(instruction: str, condition: str = "", source: str = "com.whatsapp") -> NotificationRule:
    return NotificationRule(target_source=source, instruction=instruction, condition=condition)


def _event() -> NotificationEvent:
    return NotificationEvent.from_raw(
        {"packageName": "com.whatsapp", "title": "Anna", "text": "Running 10 minutes late"}
    )


def _tools(sent: list[str]) -> ToolRegistry:
    def _reply(text: str) -> str:
        sent.append(text)
        return "reply sent"

    return ToolRegistry(
        [
            FunctionTool(
                _reply,
                name="send_reply",
                description="Reply to the sender.",
                parameters={
                    "type": "object",
                    "properties": {"text": {"type": "string"}},
                    "required": ["text"],
                },
            ),
            FunctionTool(
                lambda: "scheduled",
                name="schedule_task",
                description="Schedule work for later.",
                tags=["scheduling"],
            ),
            FunctionTool(
                lambda: "spoken",
                name="speak",
                description="Speak to the user.",
                tags=["narration"],
            ),
            FunctionTool(
                lambda: "noted",
                name="remember",
                description="Store a fact.",
                tags=["personal_memory"],
            ),
        ]
    )


def test_event_from_raw_maps_display_name() -> None:
    event = _event()

    assert event.app_name == "WhatsApp"
    assert event.sender == "Anna"
    assert event.preview == "Running 10 minutes late"
    assert not event.is_email


def test_email_event_uses_subject() -> None:
    event = NotificationEvent.from_raw(
        {"packageName": "com.google.android.gm", "title": "Bob", "text": "Invoice March"}
    )

    assert event.is_email
    assert event.subject == "Invoice March"
    assert event.preview == ""
    message = build_triage_message(event, [_rule("Summarize it", source=event.source)], "en-US")
    assert "from:Bob subject:Invoice March" in message


def test_event_without_source_is_rejected() -> None:
    with pytest.raises(ValueError, match="packageName"):
        NotificationEvent.from_raw({"title": "x"})


def test_single_unconditional_rule_is_fast_path() -> None:
    message = build_triage_message(_event(), [_rule("Read it out loud")], "de-DE")

    assert message.startswith("[NOTIFICATION - automatic, not typed by the user]")
    assert "YOUR TASK:\nRead it out loud" in message
    assert NO_MATCH_SENTINEL not in message
    assert 'BCP-47 code "de-DE"' in message


def test_conditional_rules_are_listed_in_order() -> None:
    rules = [_rule("Reply OK", "sender is Anna"), _rule("Ignore it", "message mentions ads")]

    message = build_triage_message(_event(), rules, "en-US")

    assert "Execute ONLY the FIRST rule" in message
    assert message.index("Rule 1:") < message.index("Rule 2:")
    assert "Condition: sender is Anna" in message
    assert NO_MATCH_SENTINEL in message


def test_build_triage_message_requires_rules() -> None:
    with pytest.raises(ValueError, match="at least one rule"):
        build_triage_message(_event(), [], "en-US")


def test_triage_tools_drop_background_capabilities() -> None:
    tools = _tools([])

    filtered = triage_tools(tools)

    assert filtered.list() == ["send_reply"]
    assert len(tools) == 4


@pytest.mark.asyncio
async def test_fast_path_executes_instruction() -> None:
    sent: list[str] = []
    model = ScriptedModel(
        [
            call_response("send_reply", {"text": "No problem!"}),
            text_response("Replied to Anna: No problem!"),
        ]
    )

    outcome = await run_notification_subagent(
        model,
        _tools(sent),
        _event(),
        [_rule("Reply that it is fine")],
        system_prompt="You are a helpful assistant.",
        language="en-US",
    )

    assert outcome.matched
    assert outcome.fast_path
    assert outcome.text == "Replied to Anna: No problem!"
    assert sent == ["No problem!"]
    assert [d.name for d in model.calls[0]["tools"]] == ["send_reply"]


@pytest.mark.asyncio
async def test_first_matching_rule_only() -> None:
    sent: list[str] = []
    model = ScriptedModel(
        [call_response("send_reply", {"text": "See you soon"}), text_response("Rule 1 applied.")]
    )
    rules = [_rule("Reply 'See you soon'", "sender is Anna"), _rule("Reply 'Busy'", "any")]

    outcome = await run_notification_subagent(
        model, _tools(sent), _event(), rules, system_prompt="sys", language="en-US"
    )

    assert outcome.matched
    assert not outcome.fast_path
    assert sent == ["See you soon"]
    assert outcome.iterations_used == 2


@pytest.mark.asyncio
async def test_sentinel_means_no_match() -> None:
    model = ScriptedModel([text_response(f"  {NO_MATCH_SENTINEL}  ")])
    rules = [_rule("Reply", "sender is Bob"), _rule("Forward", "mentions invoice")]

    outcome = await run_notification_subagent(
        model, _tools([]), _event(), rules, system_prompt="sys", language="en-US"
    )

    assert not outcome.matched
    assert outcome.text == ""
    assert outcome.iterations_used == 1


@pytest.mark.asyncio
async def test_triage_model_errors_propagate() -> None:
    model = ScriptedModel([RuntimeError("offline")])

    with pytest.raises(RuntimeError, match="offline"):
        await run_notification_subagent(
            model, _tools([]), _event(), [_rule("Reply")], system_prompt="sys", language="en-US"
        )


@pytest.mark.asyncio
async def test_exhausted_triage_is_timed_out_not_unmatched() -> None:
    sent: list[str] = []
    model = ScriptedModel([call_response("send_reply", {"text": "again"})], repeat_last=True)

    outcome = await run_notification_subagent(
        model,
        _tools(sent),
        _event(),
        [_rule("Reply")],
        system_prompt="sys",
        language="en-US",
        max_iterations=2,
    )

    assert outcome.timed_out
    assert not outcome.matched
    assert outcome.text == ""
    assert outcome.iterations_used == 2
    assert len(model.calls) == 2


@pytest.mark.asyncio
async def test_exhausted_triage_drops_intermediate_text() -> None:
    model = ScriptedModel(
        [call_response("send_reply", {"text": "hi"}, text="Replying now...")], repeat_last=True
    )

    outcome = await run_notification_subagent(
        model,
        _tools([]),
        _event(),
        [_rule("Reply", "sender is Anna"), _rule("Forward", "any")],
        system_prompt="sys",
        language="en-US",
        max_iterations=1,
    )

    assert outcome.timed_out
    assert outcome.text == ""


@pytest.mark.asyncio
async def test_empty_final_answer_is_not_a_match() -> None:
    outcome = await run_notification_subagent(
        ScriptedModel([text_response("   ")]),
        _tools([]),
        _event(),
        [_rule("Reply")],
        system_prompt="sys",
        language="en-US",
    )

    assert not outcome.matched
    assert not outcome.timed_out
