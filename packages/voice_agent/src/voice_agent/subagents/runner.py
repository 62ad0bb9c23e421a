"""Headless sub-agent execution and result hand-off.

A headless run is one loop invocation with a run-owned termination record.
The finish capability is registered only for that run and is the only valid
exit: a run that returns without the record being written is a timeout, no
matter whether the ceiling was reached or the model simply stopped calling
tools.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from voice_agent.agent.loop import ToolLoopConfig, run_tool_loop
from voice_agent.llm.types import Message
from voice_agent.logging_utils import run_context
from voice_agent.subagents.models import SubagentOutcome
from voice_agent.subagents.termination import FinishTaskTool, TerminationRecord
from voice_agent.utils import new_run_id

if TYPE_CHECKING:
    from voice_agent.llm.types import ChatModel
    from voice_agent.store.pending import PendingQueue
    from voice_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "The task reached the iteration limit without being completed."
EMPTY_FINISH_MESSAGE = "Task completed (no message returned)."
FAILURE_MESSAGE = "The task failed unexpectedly."


@runtime_checkable
class ForegroundBridge(Protocol):
    """Asks the foreground session to resume and drain pending results."""

    async def request_resume(self) -> None: ...


class HeadlessRunner:
    """Run one sub-agent conversation to a classified outcome."""

    def __init__(
        self,
        model: ChatModel,
        *,
        max_iterations: int,
        model_id: str | None = None,
        timeout_message: str = TIMEOUT_MESSAGE,
        run_prefix: str = "subagent",
    ) -> None:
        self._model = model
        self._max_iterations = max_iterations
        self._model_id = model_id
        self._timeout_message = timeout_message
        self._run_prefix = run_prefix

    async def run(
        self,
        tools: ToolRegistry,
        system_prompt: str,
        first_message: str,
    ) -> SubagentOutcome:
        """Run the sub-agent.

        Args:
            tools: Capabilities for this run. A private copy receives the
                finish capability, so ``tools`` itself is left untouched.
            system_prompt: Instructions only.
            first_message: Initial user turn, carrying any state snapshot.
        """
        run_id = new_run_id(self._run_prefix)
        record = TerminationRecord()
        run_tools = tools.copy()
        run_tools.register(FinishTaskTool(record))

        config = ToolLoopConfig(
            model=self._model,
            tools=run_tools,
            max_iterations=self._max_iterations,
            model_id=self._model_id,
            should_exit=lambda: record.done,
            exit_content=lambda: record.final_message,
        )
        messages = [Message.system(system_prompt), Message.user(first_message)]

        with run_context(run_id):
            logger.info("Headless run started (max %d iterations)", self._max_iterations)
            try:
                result = await run_tool_loop(config, messages)
            except Exception as exc:
                logger.exception("Headless run failed")
                return SubagentOutcome(
                    status="failed",
                    message=FAILURE_MESSAGE,
                    run_id=run_id,
                    error=str(exc),
                )

            logger.info(
                "Headless run finished: %s | %s",
                result.metrics.format_summary(),
                result.metrics.format_tool_summary(),
            )
            if not record.done:
                return SubagentOutcome(
                    status="timeout",
                    message=self._timeout_message,
                    run_id=run_id,
                    iterations_used=result.iterations_used,
                    metrics=result.metrics,
                )
            return SubagentOutcome(
                status=record.status,
                message=record.final_message or EMPTY_FINISH_MESSAGE,
                run_id=run_id,
                iterations_used=result.iterations_used,
                metrics=result.metrics,
            )


class ResultDelivery:
    """Hands background output to the foreground through the pending queue."""

    def __init__(self, pending: PendingQueue, bridge: ForegroundBridge | None = None) -> None:
        self._pending = pending
        self._bridge = bridge

    async def deliver(self, text: str) -> bool:
        """Queue ``text`` and ask the foreground to resume.

        The entry is written before the resume request so the foreground
        finds it when it drains. Empty text is not delivered.
        """
        if not text.strip():
            return False
        self._pending.append("assistant", text.strip())
        if self._bridge is not None:
            try:
                await self._bridge.request_resume()
            except Exception:
                logger.warning("Could not bring the foreground session back", exc_info=True)
        return True
