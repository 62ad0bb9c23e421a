"""UI-automation sub-agent.

Controls an externally rendered UI through an accessibility tree. The tree is
state: the initial snapshot is the first user message and every refresh comes
back as a tool result. It is never written into the system prompt, so the
conversation holds exactly one current snapshot and older node ids are
visibly superseded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from voice_agent.errors import UIDriverError
from voice_agent.subagents.runner import HeadlessRunner
from voice_agent.tools.base import Tool, error_result, success_result
from voice_agent.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from voice_agent.llm.types import ChatModel
    from voice_agent.subagents.models import SubagentOutcome
    from voice_agent.tools.base import ToolResult

logger = logging.getLogger(__name__)

NODE_ACTIONS = (
    "click",
    "long_click",
    "type",
    "clear",
    "focus",
    "scroll_forward",
    "scroll_backward",
)
GLOBAL_ACTIONS = (
    "home",
    "back",
    "screenshot",
    "clipboard_read",
    "clipboard_write",
    "clipboard_paste",
)
GESTURE_ACTION = "gesture"

UI_TIMEOUT_MESSAGE = "The automation reached the iteration limit without completing the task."
DEFAULT_MAX_REFRESHES = 3


@runtime_checkable
class UIDriver(Protocol):
    """Bridge to the accessibility service of the device.

    Every method raises :class:`~voice_agent.errors.UIDriverError` on failure.
    """

    async def is_service_enabled(self) -> bool: ...

    async def open_target(
        self, target: str, intent_action: str | None, intent_uri: str | None
    ) -> None: ...

    async def wait_for_target(self, target: str, timeout: float) -> bool: ...

    async def capture_tree(self) -> str: ...

    async def perform_action(self, action: str, node_id: str, text: str | None) -> str: ...

    async def perform_global_action(self, action: str, text: str | None) -> str: ...

    async def gesture(
        self, x: int, y: int, end_x: int | None, end_y: int | None, duration_ms: int
    ) -> str: ...


class AccessibilityActionTool(Tool):
    """Executes one node, global or gesture action."""

    name = "accessibility_action"
    description = (
        "Execute a UI action in the currently open app. Node actions (click, long_click, "
        "type, clear, focus, scroll_forward, scroll_backward) need a node_id from the most "
        "recent accessibility tree. Global actions (home, back, screenshot, clipboard_read, "
        "clipboard_write, clipboard_paste) need no node_id. gesture taps or swipes at "
        "screen coordinates."
    )
    parameters = {
        "type": "object",
        "properties": {
            "action": {
                "type": "string",
                "enum": [*NODE_ACTIONS, *GLOBAL_ACTIONS, GESTURE_ACTION],
                "description": "Action to perform.",
            },
            "node_id": {
                "type": "string",
                "description": (
                    'Node ID from the latest tree (e.g. "node_5"). Required for node actions.'
                ),
            },
            "text": {
                "type": "string",
                "description": 'Text for "type" and "clipboard_write".',
            },
            "x": {"type": "integer", "description": "Gesture start x coordinate."},
            "y": {"type": "integer", "description": "Gesture start y coordinate."},
            "end_x": {"type": "integer", "description": "Swipe end x coordinate (omit for a tap)."},
            "end_y": {"type": "integer", "description": "Swipe end y coordinate (omit for a tap)."},
            "duration_ms": {"type": "integer", "description": "Gesture duration in milliseconds."},
        },
        "required": ["action"],
    }

    def __init__(self, driver: UIDriver, action_log: list[str] | None = None) -> None:
        self._driver = driver
        self.action_log = action_log if action_log is not None else []

    async def execute(self, args: dict[str, Any]) -> ToolResult:
        action = str(args.get("action") or "")
        node_id = args.get("node_id") or None
        text = args.get("text")

        try:
            if action in NODE_ACTIONS:
                if not node_id:
                    return error_result(
                        '"node_id" parameter is required - pick a node from the accessibility tree'
                    )
                if action == "type" and not text:
                    return error_result('"text" parameter is required when action is "type"')
                outcome = await self._driver.perform_action(action, str(node_id), text)
                self.action_log.append(f"{action}" + (f' "{text}"' if text else ""))
            elif action in GLOBAL_ACTIONS:
                if action == "clipboard_write" and not text:
                    return error_result(
                        '"text" parameter is required when action is "clipboard_write"'
                    )
                outcome = await self._driver.perform_global_action(action, text)
                self.action_log.append(action)
            elif action == GESTURE_ACTION:
                if args.get("x") is None or args.get("y") is None:
                    return error_result('"x" and "y" are required for "gesture"')
                outcome = await self._driver.gesture(
                    int(args["x"]),
                    int(args["y"]),
                    _optional_int(args.get("end_x")),
                    _optional_int(args.get("end_y")),
                    int(args.get("duration_ms") or 100),
                )
                self.action_log.append("gesture")
            else:
                return error_result(f"Unsupported action: {action}")
        except UIDriverError as exc:
            self.action_log.append(f"{action} failed")
            return error_result(f"Accessibility action failed: {exc}")
        return success_result(outcome)


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


class RefreshTreeTool(Tool):
    """Re-captures the UI and returns the fresh tree into the running conversation."""

    name = "get_accessibility_tree"
    parameters = {
        "type": "object",
        "properties": {
            "reason": {
                "type": "string",
                "description": "Brief explanation of why you need to refresh the tree.",
            },
        },
    }

    def __init__(
        self,
        driver: UIDriver,
        settle_delay: float = 0.8,
        max_refreshes: int = DEFAULT_MAX_REFRESHES,
    ) -> None:
        self._driver = driver
        self._settle_delay = settle_delay
        self.description = (
            "Re-capture the current UI tree of the open app. Returns the updated tree so you "
            "can see what changed after your last action. After receiving the new tree, ALWAYS "
            "use the new node IDs - old ones are invalid. If you are still stuck after "
            f"{max_refreshes} refreshes without progress, go home and retry once, then call "
            'finish_task with status "failed".'
        )

    async def execute(self, args: dict[str, Any]) -> ToolResult:
        await asyncio.sleep(self._settle_delay)
        try:
            tree = await self._driver.capture_tree()
        except UIDriverError as exc:
            return error_result(f"Failed to refresh accessibility tree: {exc}")
        logger.debug("Refreshed tree (%d chars)", len(tree))
        return success_result(tree)


def build_ui_automation_prompt(
    target: str,
    goal: str,
    hints: str = "",
    max_refreshes: int = DEFAULT_MAX_REFRESHES,
) -> str:
    """Build the instructions-only system prompt for a UI-automation run."""
    prompt = f"""You are a UI-automation sub-agent of a personal AI assistant.
Your job is to control the UI of the app "{target}" to achieve a specific goal.

## Your Goal
{goal}

## Rules of Engagement (CRITICAL)
1. **Understand State:** Analyze the accessibility tree provided in the conversation. Identify \
clickable, editable or scrollable nodes needed for your goal.
2. **Take Action:** Use the `accessibility_action` tool to interact with the UI.
3. **Refresh State:** After any action that changes the screen, use `get_accessibility_tree` to \
see the new UI state.
4. **Node ID Volatility:** Node IDs (e.g. "node_5") are EPHEMERAL. NEVER reuse a node ID from an \
older tree. Always use the IDs from the most recent tree.
5. **App Boundary:** Stay inside "{target}". Use the home or back actions only for the recovery \
described below or when the goal requires it.

## Termination & Failure (YOU MUST FOLLOW THIS)
- **Success:** As soon as the UI state confirms the goal is achieved, call `finish_task` with \
`status: "success"`. Take no further actions after that.
- **Loading:** If the screen appears to be loading, use `get_accessibility_tree` to poll again.
- **Recovery:** After at most {max_refreshes} refreshes without meaningful progress, press home, \
refresh the tree, navigate back into "{target}" and retry once.
- **Failure:** If the recovery does not help, call `finish_task` with `status: "failed"` and \
explain why. Never give up by just replying with text."""
    if hints.strip():
        prompt += (
            "\n\n## Hints From Previous Runs\n"
            "Learned from earlier automations of this app. They contain no node IDs.\n\n"
            f"{hints.strip()}"
        )
    return prompt


def build_first_message(target: str, goal: str, tree: str) -> str:
    return (
        f'Here is the current accessibility tree for "{target}":\n\n'
        f"```\n{tree}\n```\n\n"
        f"Please achieve the goal: {goal}"
    )


async def run_ui_automation_subagent(
    model: ChatModel,
    driver: UIDriver,
    *,
    target: str,
    goal: str,
    tree: str,
    hints: str = "",
    max_iterations: int = 12,
    tree_settle_delay: float = 0.8,
    model_id: str | None = None,
) -> SubagentOutcome:
    """Run the UI-automation sub-agent from an already captured tree."""
    action_log: list[str] = []
    tools = ToolRegistry(
        [
            AccessibilityActionTool(driver, action_log),
            RefreshTreeTool(driver, settle_delay=tree_settle_delay),
        ]
    )
    runner = HeadlessRunner(
        model,
        max_iterations=max_iterations,
        model_id=model_id,
        timeout_message=UI_TIMEOUT_MESSAGE,
        run_prefix="ui",
    )
    logger.info("UI automation for %s (%d chars of tree)", target, len(tree))
    outcome = await runner.run(
        tools,
        build_ui_automation_prompt(target, goal, hints),
        build_first_message(target, goal, tree),
    )
    return replace(outcome, action_log=tuple(action_log))
