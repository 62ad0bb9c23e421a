"""Notification-triage sub-agent.

Evaluates the enabled rules for one incoming event and executes at most one
instruction. A single unconditional rule is executed directly; otherwise the
model judges the conditions in order, runs the first match only, and answers
with :data:`NO_MATCH_SENTINEL` (and no tool calls) when nothing matches.

There is no finish capability here: the run ends through the loop's normal
no-tool-calls exit. Scheduling, delivery and narration capabilities are
removed so a triage run cannot trigger further background work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from voice_agent.agent.loop import ToolLoopConfig, run_tool_loop
from voice_agent.llm.types import Message
from voice_agent.logging_utils import run_context
from voice_agent.subagents.models import TriageOutcome
from voice_agent.subagents.termination import FINISH_TOOL_NAME
from voice_agent.utils import new_run_id

if TYPE_CHECKING:
    from voice_agent.llm.types import ChatModel
    from voice_agent.store.rules import NotificationRule
    from voice_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

NO_MATCH_SENTINEL = "__NO_MATCH__"
TRIAGE_EXCLUDED_TAGS = ("scheduling", "delivery", "narration", "personal_memory")

APP_ALIASES: dict[str, str] = {
    "com.whatsapp": "WhatsApp",
    "com.google.android.gm": "Email",
    "org.telegram.messenger": "Telegram",
    "org.thoughtcrime.securesms": "Signal",
    "com.android.mms": "SMS",
}
EMAIL_APPS = ("Email", "Gmail")


def display_name(source: str) -> str:
    """Map a source identifier to a display name, passing unknown ones through."""
    return APP_ALIASES.get(source, source)


@dataclass(frozen=True)
class NotificationEvent:
    """One incoming notification."""

    source: str
    app_name: str
    sender: str = ""
    subject: str = ""
    preview: str = ""

    @property
    def is_email(self) -> bool:
        return self.app_name in EMAIL_APPS

    @classmethod
    def from_raw(cls, data: dict[str, Any]) -> NotificationEvent:
        """Build an event from the listener payload (packageName, title, text, sender)."""
        source = str(data.get("packageName") or "").strip()
        if not source:
            msg = "Notification payload has no packageName"
            raise ValueError(msg)
        app_name = display_name(source)
        title = str(data.get("title") or "")
        text = str(data.get("text") or "")
        sender = str(data.get("sender") or "") or title
        if app_name in EMAIL_APPS:
            return cls(source=source, app_name=app_name, sender=sender, subject=text)
        return cls(source=source, app_name=app_name, sender=sender, preview=text)


def is_fast_path(rules: list[NotificationRule]) -> bool:
    """True when a single unconditional rule applies."""
    return len(rules) == 1 and not rules[0].has_condition


def format_rules(rules: list[NotificationRule]) -> str:
    blocks = []
    for index, rule in enumerate(rules, start=1):
        condition = rule.condition.strip() if rule.has_condition else "(none - always applies)"
        blocks.append(
            f"Rule {index}:\n   Condition: {condition}\n   Instruction: {rule.instruction}"
        )
    return "\n\n".join(blocks)


def build_triage_message(
    event: NotificationEvent,
    rules: list[NotificationRule],
    language: str,
) -> str:
    """Build the user turn that carries the event and the rules."""
    if not rules:
        msg = "Triage needs at least one rule"
        raise ValueError(msg)

    if is_fast_path(rules):
        task = f"YOUR TASK:\n{rules[0].instruction}"
    else:
        task = "\n".join(
            [
                "The user has configured the following notification rules for this app.",
                "Evaluate each rule's condition against the notification above, in order.",
                "Execute ONLY the FIRST rule whose condition matches. Ignore all later rules.",
                f"If NO rule matches, respond with EXACTLY the text {NO_MATCH_SENTINEL} and "
                "nothing else. Do NOT use any tools.",
                "",
                format_rules(rules),
            ]
        )

    parts = [
        "[NOTIFICATION - automatic, not typed by the user]",
        f"App: {event.app_name}",
        f"Sender: {event.sender}" if event.sender else "",
        f"Subject: {event.subject}" if event.subject else "",
        f"Message: {event.preview}" if event.preview else "",
        "",
        "You are a background sub-agent processing a single notification.",
        "There is no direct user interaction - do not ask questions.",
        "",
        task,
        "",
        f'Respond in the language with BCP-47 code "{language}".',
    ]
    if event.is_email and event.sender:
        parts.append(
            f"Context: for follow-up email detail, search with: "
            f"from:{event.sender} subject:{event.subject}"
        )
    lines = [line for line in parts if line]
    return "\n".join(lines)


def triage_tools(tools: ToolRegistry) -> ToolRegistry:
    """Return a copy of ``tools`` safe for triage runs."""
    run_tools = tools.copy()
    run_tools.remove_tagged(TRIAGE_EXCLUDED_TAGS)
    run_tools.unregister(FINISH_TOOL_NAME)
    return run_tools


def is_no_match(text: str) -> bool:
    return NO_MATCH_SENTINEL in text


async def run_notification_subagent(
    model: ChatModel,
    tools: ToolRegistry,
    event: NotificationEvent,
    rules: list[NotificationRule],
    *,
    system_prompt: str,
    language: str,
    max_iterations: int = 8,
    model_id: str | None = None,
) -> TriageOutcome:
    """Run triage for one event.

    Model-call errors propagate to the caller.
    """
    fast_path = is_fast_path(rules)
    config = ToolLoopConfig(
        model=model,
        tools=triage_tools(tools),
        max_iterations=max_iterations,
        model_id=model_id,
    )
    messages = [
        Message.system(system_prompt),
        Message.user(build_triage_message(event, rules, language)),
    ]
    with run_context(new_run_id("triage")):
        logger.info(
            "Triage for %s from %r: %d rule(s)%s",
            event.app_name,
            event.sender,
            len(rules),
            " (fast path)" if fast_path else "",
        )
        result = await run_tool_loop(config, messages)
        if result.exhausted:
            logger.warning(
                "Triage for %s hit the iteration limit (%d)", event.app_name, max_iterations
            )
            return TriageOutcome(
                text="",
                matched=False,
                iterations_used=result.iterations_used,
                fast_path=fast_path,
                timed_out=True,
            )
        text = result.final_content.strip()
        matched = bool(text) and not is_no_match(text)
        logger.info(
            "Triage done after %d iteration(s), matched=%s", result.iterations_used, matched
        )
    return TriageOutcome(
        text=text if matched else "",
        matched=matched,
        iterations_used=result.iterations_used,
        fast_path=fast_path,
    )
