"""Headless job entry points.

These jobs run outside the foreground session. They never narrate results
themselves (except the short notification announcement): every outcome,
success or failure, is written to the pending queue and the foreground is
asked to resume. Errors before a model is available are delivered as raw
text; later errors are phrased by the model in the user's language.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from voice_agent.agent.locale import resolve_language
from voice_agent.agent.prompts import (
    build_system_prompt,
    formulate_response,
    generate_announcement,
)
from voice_agent.config.settings import Settings
from voice_agent.errors import ConfigError, UIDriverError
from voice_agent.llm.types import Message
from voice_agent.providers.registry import create_chat_model
from voice_agent.subagents.notification import (
    NotificationEvent,
    run_notification_subagent,
    triage_tools,
)
from voice_agent.subagents.runner import ResultDelivery
from voice_agent.subagents.ui_automation import run_ui_automation_subagent
from voice_agent.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from voice_agent.config.agent_config import AgentConfig, AgentConfigStore
    from voice_agent.llm.types import ChatModel
    from voice_agent.session.state import Narrator
    from voice_agent.store.hints import HintStore
    from voice_agent.store.pending import PendingQueue
    from voice_agent.store.rules import RulesStore
    from voice_agent.subagents.runner import ForegroundBridge
    from voice_agent.subagents.ui_automation import UIDriver

logger = logging.getLogger(__name__)

ModelFactory = Callable[["AgentConfig"], "ChatModel"]
ToolsFactory = Callable[["AgentConfig"], ToolRegistry]

NO_ACTIVE_WINDOW = "No active window found"
_NODE_ID_PATTERN = re.compile(r"\bnode_\d+\b")


@dataclass
class HeadlessDeps:
    """Collaborators of the headless jobs."""

    config_store: AgentConfigStore
    pending: PendingQueue
    bridge: ForegroundBridge | None = None
    driver: UIDriver | None = None
    rules_store: RulesStore | None = None
    hints: HintStore | None = None
    narrator: Narrator | None = None
    tools_factory: ToolsFactory | None = None
    model_factory: ModelFactory = create_chat_model
    settings: Settings = field(default_factory=Settings)

    @property
    def delivery(self) -> ResultDelivery:
        return ResultDelivery(self.pending, self.bridge)


class UIAutomationJob(BaseModel, frozen=True):
    """A request to automate a goal inside a target app."""

    target: str = Field(alias="packageName", min_length=1)
    goal: str = Field(min_length=1)
    intent_action: str | None = Field(default=None, alias="intentAction")
    intent_uri: str | None = Field(default=None, alias="intentUri")

    model_config = {"populate_by_name": True}


@dataclass(frozen=True)
class _JobContext:
    model: ChatModel
    target: str
    goal: str
    driving_mode: bool
    language: str


async def _deliver_failure(deps: HeadlessDeps, ctx: _JobContext, raw_message: str) -> str:
    text = await formulate_response(
        ctx.model,
        goal=ctx.goal,
        target=ctx.target,
        status="failed",
        raw_message=raw_message,
        driving_mode=ctx.driving_mode,
        language=ctx.language,
    )
    await deps.delivery.deliver(text)
    return text


def _parse_job(job: UIAutomationJob | str | dict[str, Any]) -> UIAutomationJob:
    if isinstance(job, UIAutomationJob):
        return job
    if isinstance(job, str):
        return UIAutomationJob.model_validate_json(job)
    return UIAutomationJob.model_validate(job)


async def run_ui_automation_job(
    job: UIAutomationJob | str | dict[str, Any],
    deps: HeadlessDeps,
) -> str:
    """Run one UI-automation job end to end and return the delivered text."""
    try:
        parsed = _parse_job(job)
    except ValidationError:
        logger.exception("Invalid UI automation job")
        text = "UI automation failed: Invalid job data."
        await deps.delivery.deliver(text)
        return text

    try:
        config = deps.config_store.load_required()
        config.require_api_key()
        model = deps.model_factory(config)
    except ConfigError as exc:
        logger.error("UI automation config error: %s", exc)
        text = f"UI automation failed: {exc}"
        await deps.delivery.deliver(text)
        return text

    ctx = _JobContext(
        model=model,
        target=parsed.target,
        goal=parsed.goal,
        driving_mode=config.driving_mode,
        language=resolve_language(config.language),
    )
    driver = deps.driver
    settings = deps.settings

    if driver is None or not await _service_enabled(driver):
        return await _deliver_failure(
            deps, ctx, "The accessibility service is not enabled. Please enable it in the settings."
        )

    if parsed.intent_action:
        try:
            await driver.open_target(parsed.target, parsed.intent_action, parsed.intent_uri)
        except UIDriverError as exc:
            logger.error("Opening %s failed: %s", parsed.target, exc)
            return await _deliver_failure(deps, ctx, f"Could not open the app: {exc}")
        if not await _wait_for_target(driver, parsed.target, settings.app_wait_timeout_seconds):
            return await _deliver_failure(
                deps,
                ctx,
                f"The app did not appear in the foreground within "
                f"{settings.app_wait_timeout_seconds:g} seconds. Please make sure it is installed.",
            )
        await asyncio.sleep(settings.app_render_delay_seconds)

    try:
        tree = await driver.capture_tree()
    except UIDriverError as exc:
        logger.error("Tree capture failed: %s", exc)
        return await _deliver_failure(deps, ctx, f"Could not read the UI tree: {exc}")
    if not tree.strip() or NO_ACTIVE_WINDOW in tree:
        return await _deliver_failure(
            deps, ctx, "No active window found. The app does not seem to be open."
        )

    hints = deps.hints.get_hints(parsed.target) if deps.hints is not None else ""
    outcome = await run_ui_automation_subagent(
        model,
        driver,
        target=parsed.target,
        goal=parsed.goal,
        tree=tree,
        hints=hints,
        max_iterations=config.iteration_limits.ui_automation,
        tree_settle_delay=settings.tree_settle_delay_seconds,
    )
    if outcome.error:
        logger.error("UI automation run %s failed: %s", outcome.run_id, outcome.error)
    logger.info("UI automation %s: %s", outcome.status, outcome.message[:200])

    text = await formulate_response(
        model,
        goal=parsed.goal,
        target=parsed.target,
        status=outcome.status,
        raw_message=outcome.message,
        driving_mode=ctx.driving_mode,
        language=ctx.language,
    )
    await deps.delivery.deliver(text)

    if deps.hints is not None and outcome.action_log:
        await _learn_hints(deps.hints, model, parsed, outcome.status, hints, outcome.action_log)
    return text


async def _service_enabled(driver: UIDriver) -> bool:
    try:
        return await driver.is_service_enabled()
    except UIDriverError:
        logger.warning("Accessibility service check failed", exc_info=True)
        return False


async def _wait_for_target(driver: UIDriver, target: str, timeout: float) -> bool:
    try:
        return await driver.wait_for_target(target, timeout)
    except UIDriverError:
        logger.warning("Waiting for %s failed", target, exc_info=True)
        return False


async def condense_hints(
    model: ChatModel,
    *,
    target: str,
    goal: str,
    status: str,
    prior_hints: str,
    action_log: tuple[str, ...] | list[str],
) -> str:
    """Condense prior hints and one run's action log into short free-text hints.

    Node identifiers are stripped from the result. Model errors propagate.
    """
    system_prompt = (
        "You maintain short notes that help a UI-automation agent operate one app.\n"
        "Merge the existing notes with what was learned in the latest run.\n"
        "Rules:\n"
        "1. At most a few short paragraphs of plain text.\n"
        "2. Describe screens, labels and navigation paths. NEVER include node IDs.\n"
        "3. Keep advice that is still useful; drop anything contradicted by the latest run."
    )
    user_prompt = (
        f"App: {target}\nGoal: {goal}\nOutcome: {status}\n\n"
        f"Existing notes:\n{prior_hints.strip() or '(none)'}\n\n"
        "Actions taken in the latest run:\n"
        + ("\n".join(f"- {entry}" for entry in action_log) or "(none)")
    )
    response = await model.chat([Message.system(system_prompt), Message.user(user_prompt)], [])
    return _NODE_ID_PATTERN.sub("", response.content).strip()


async def _learn_hints(
    hints: HintStore,
    model: ChatModel,
    job: UIAutomationJob,
    status: str,
    prior_hints: str,
    action_log: tuple[str, ...],
) -> None:
    try:
        condensed = await condense_hints(
            model,
            target=job.target,
            goal=job.goal,
            status=status,
            prior_hints=prior_hints,
            action_log=action_log,
        )
    except Exception:
        logger.warning("Hint condensing failed for %s", job.target, exc_info=True)
        return
    if condensed:
        hints.save_hints(job.target, condensed)
        logger.debug("Stored %d chars of hints for %s", len(condensed), job.target)


def _parse_event(event: NotificationEvent | str | dict[str, Any]) -> NotificationEvent:
    if isinstance(event, NotificationEvent):
        return event
    data = json.loads(event) if isinstance(event, str) else event
    if not isinstance(data, dict):
        msg = "Notification payload must be a JSON object"
        raise TypeError(msg)
    return NotificationEvent.from_raw(data)


async def run_notification_job(
    event: NotificationEvent | str | dict[str, Any],
    deps: HeadlessDeps,
) -> str | None:
    """Triage one notification and deliver any result.

    Returns the delivered text, or None when nothing was delivered.
    """
    try:
        parsed = _parse_event(event)
    except (json.JSONDecodeError, TypeError, ValueError):
        logger.exception("Could not parse notification payload")
        return None

    try:
        config = deps.config_store.load_required()
        config.require_api_key()
    except ConfigError as exc:
        logger.error("Cannot run notification triage: %s", exc)
        return None

    if deps.rules_store is None:
        logger.debug("No rules store configured")
        return None
    rules = deps.rules_store.rules_for_source(parsed.source)
    if not rules:
        logger.info("No enabled rules for %s - skipping", parsed.source)
        return None

    try:
        model = deps.model_factory(config)
    except ConfigError as exc:
        logger.error("Cannot build model for notification triage: %s", exc)
        return None
    language = resolve_language(config.language)

    if deps.narrator is not None:
        await _announce(deps.narrator, model, parsed, config.driving_mode, language)

    tools = deps.tools_factory(config) if deps.tools_factory is not None else ToolRegistry()
    tools.remove_disabled(config.enabled_features)
    system_prompt = build_system_prompt(
        triage_tools(tools),
        driving_mode=config.driving_mode,
        language=language,
    )

    try:
        outcome = await run_notification_subagent(
            model,
            tools,
            parsed,
            rules,
            system_prompt=system_prompt,
            language=language,
            max_iterations=config.iteration_limits.notification,
        )
    except Exception:
        logger.exception("Notification triage failed for %s", parsed.source)
        text = f"I could not process the {_describe(parsed)}."
        await deps.delivery.deliver(text)
        return text

    if outcome.timed_out:
        text = f"I ran out of steps while handling the {_describe(parsed)}."
        await deps.delivery.deliver(text)
        return text
    if not outcome.matched:
        logger.info("No rule matched for %s - nothing delivered", parsed.source)
        return None
    await deps.delivery.deliver(outcome.text)
    return outcome.text


def _describe(event: NotificationEvent) -> str:
    sender = f" from {event.sender}" if event.sender else ""
    return f"{event.app_name} notification{sender}"


async def _announce(
    narrator: Narrator,
    model: ChatModel,
    event: NotificationEvent,
    driving_mode: bool,
    language: str,
) -> None:
    announcement = await generate_announcement(
        model,
        app_name=event.app_name,
        sender=event.sender,
        preview=event.preview or event.subject,
        driving_mode=driving_mode,
        language=language,
    )
    try:
        await narrator.speak(announcement, language)
    except Exception:
        logger.warning("Announcement narration failed", exc_info=True)
