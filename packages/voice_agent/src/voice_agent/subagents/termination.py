"""Termination record and the finish capability that writes it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from voice_agent.tools.base import Tool, error_result, success_result

if TYPE_CHECKING:
    from voice_agent.subagents.models import FinishStatus
    from voice_agent.tools.base import ToolResult

logger = logging.getLogger(__name__)

FINISH_TOOL_NAME = "finish_task"


@dataclass
class TerminationRecord:
    """Exit signal owned by one sub-agent run.

    Written once by :class:`FinishTaskTool`; the loop only reads ``done``.
    """

    done: bool = False
    final_message: str = ""
    status: FinishStatus = "success"

    def finish(self, status: FinishStatus, message: str) -> bool:
        """Record the outcome. Returns False if the record was already written."""
        if self.done:
            return False
        self.done = True
        self.status = status
        self.final_message = message
        return True


class FinishTaskTool(Tool):
    """The only valid exit of a headless run."""

    name = FINISH_TOOL_NAME
    description = (
        "Signal that the task is complete or that you are unable to complete it. "
        'Call this with status "success" once the goal has been achieved, '
        'or with status "failed" if you are stuck and cannot make progress. '
        "THIS IS THE ONLY WAY TO END YOUR TASK. You MUST call this tool when done."
    )
    parameters = {
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "enum": ["success", "failed"],
                "description": (
                    '"success" - goal was achieved. "failed" - could not complete the goal.'
                ),
            },
            "message": {
                "type": "string",
                "description": (
                    "A clear, concise summary of what was done (success) "
                    "or what went wrong and why (failed)."
                ),
            },
        },
        "required": ["status", "message"],
    }

    def __init__(self, record: TerminationRecord) -> None:
        self._record = record

    async def execute(self, args: dict[str, Any]) -> ToolResult:
        status = args.get("status")
        if status not in ("success", "failed"):
            return error_result('status must be "success" or "failed"')
        message = str(args.get("message") or "")
        if not self._record.finish(status, message):
            return success_result("finish_task was already called; the task is over.")
        logger.info("finish_task: status=%s", status)
        return success_result(f'finish_task called with status="{status}": {message}')
