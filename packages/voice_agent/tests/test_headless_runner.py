from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeBridge, ScriptedModel, call_response, text_response

from voice_agent.errors import ModelCallError
from voice_agent.store.pending import PendingQueue
from voice_agent.subagents.runner import HeadlessRunner, ResultDelivery
from voice_agent.subagents.termination import FinishTaskTool, TerminationRecord
from voice_agent.tools.base import FunctionTool
from voice_agent.tools.registry import ToolRegistry


def _tools() -> ToolRegistry:
    return ToolRegistry(
        [FunctionTool(lambda: "inbox: 2 unread", name="check_inbox", description="Check mail.")]
    )


def _finish(status: str = "success", message: str = "Done.") -> object:
    return call_response("finish_task", {"status": status, "message": message}, call_id="f")


@pytest.mark.asyncio
async def test_finish_on_second_iteration_stops_the_run() -> None:
    model = ScriptedModel([call_response("check_inbox"), _finish(message="Two unread mails.")])
    tools = _tools()

    outcome = await HeadlessRunner(model, max_iterations=5).run(tools, "Be precise.", "Go")

    assert outcome.status == "success"
    assert outcome.message == "Two unread mails."
    assert outcome.iterations_used == 2
    assert len(model.calls) == 2
    assert "finish_task" not in tools
    assert [d.name for d in model.calls[0]["tools"]] == ["check_inbox", "finish_task"]


@pytest.mark.asyncio
async def test_failed_finish_is_reported() -> None:
    model = ScriptedModel([_finish("failed", "Contact not found.")])

    outcome = await HeadlessRunner(model, max_iterations=3).run(_tools(), "sys", "Go")

    assert outcome.status == "failed"
    assert outcome.message == "Contact not found."
    assert not outcome.succeeded


@pytest.mark.asyncio
async def test_ceiling_without_finish_is_timeout() -> None:
    model = ScriptedModel([call_response("check_inbox")], repeat_last=True)

    outcome = await HeadlessRunner(model, max_iterations=3, timeout_message="Gave up.").run(
        _tools(), "sys", "Go"
    )

    assert outcome.status == "timeout"
    assert outcome.message == "Gave up."
    assert outcome.iterations_used == 3


@pytest.mark.asyncio
async def test_text_reply_without_finish_is_timeout() -> None:
    model = ScriptedModel([text_response("I think I am done")])

    outcome = await HeadlessRunner(model, max_iterations=5).run(_tools(), "sys", "Go")

    assert outcome.status == "timeout"
    assert outcome.iterations_used == 1


@pytest.mark.asyncio
async def test_empty_finish_message_gets_placeholder() -> None:
    model = ScriptedModel([_finish(message="")])

    outcome = await HeadlessRunner(model, max_iterations=2).run(_tools(), "sys", "Go")

    assert outcome.message == "Task completed (no message returned)."


@pytest.mark.asyncio
async def test_model_error_is_a_failed_outcome() -> None:
    model = ScriptedModel([ModelCallError("Model call failed: 401")])

    outcome = await HeadlessRunner(model, max_iterations=2).run(_tools(), "sys", "Go")

    assert outcome.status == "failed"
    assert outcome.error == "Model call failed: 401"
    assert outcome.run_id.startswith("subagent-")


@pytest.mark.asyncio
async def test_finish_tool_is_written_once() -> None:
    record = TerminationRecord()
    tool = FinishTaskTool(record)

    first = await tool.execute({"status": "success", "message": "Sent."})
    second = await tool.execute({"status": "failed", "message": "Oops."})
    invalid = await FinishTaskTool(TerminationRecord()).execute({"status": "maybe"})

    assert first.for_model == 'finish_task called with status="success": Sent.'
    assert "already called" in second.for_model
    assert record.status == "success"
    assert record.final_message == "Sent."
    assert invalid.is_error


@pytest.mark.asyncio
async def test_delivery_appends_then_resumes(tmp_path: Path) -> None:
    pending = PendingQueue(tmp_path / "pending.json")
    bridge = FakeBridge()
    delivery = ResultDelivery(pending, bridge)

    assert await delivery.deliver("  Message sent.  ")
    assert not await delivery.deliver("   ")

    assert [entry.text for entry in pending.peek()] == ["Message sent."]
    assert bridge.resumes == 1


@pytest.mark.asyncio
async def test_delivery_survives_bridge_failure(tmp_path: Path) -> None:
    class BrokenBridge:
        async def request_resume(self) -> None:
            raise RuntimeError("no activity")

    pending = PendingQueue(tmp_path / "pending.json")

    assert await ResultDelivery(pending, BrokenBridge()).deliver("Reminder set.")
    assert len(pending.peek()) == 1
