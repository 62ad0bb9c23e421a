"""Headless sub-agents: UI automation and notification triage."""

from voice_agent.subagents.models import SubagentOutcome, SubagentStatus, TriageOutcome
from voice_agent.subagents.notification import (
    NO_MATCH_SENTINEL,
    NotificationEvent,
    build_triage_message,
    run_notification_subagent,
)
from voice_agent.subagents.runner import ForegroundBridge, HeadlessRunner, ResultDelivery
from voice_agent.subagents.tasks import (
    HeadlessDeps,
    UIAutomationJob,
    condense_hints,
    run_notification_job,
    run_ui_automation_job,
)
from voice_agent.subagents.termination import FinishTaskTool, TerminationRecord
from voice_agent.subagents.ui_automation import (
    AccessibilityActionTool,
    RefreshTreeTool,
    UIDriver,
    run_ui_automation_subagent,
)

__all__ = [
    "NO_MATCH_SENTINEL",
    "AccessibilityActionTool",
    "FinishTaskTool",
    "ForegroundBridge",
    "HeadlessDeps",
    "HeadlessRunner",
    "NotificationEvent",
    "RefreshTreeTool",
    "ResultDelivery",
    "SubagentOutcome",
    "SubagentStatus",
    "TerminationRecord",
    "TriageOutcome",
    "UIAutomationJob",
    "UIDriver",
    "build_triage_message",
    "condense_hints",
    "run_notification_job",
    "run_notification_subagent",
    "run_ui_automation_job",
    "run_ui_automation_subagent",
]
