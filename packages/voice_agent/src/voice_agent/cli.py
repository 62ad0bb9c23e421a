"""Command-line harness for the voice agent.

Usage:
    voice-agent configure --provider claude --api-key sk-...
    voice-agent chat [--driving] [--voice]
    voice-agent pending [--peek]
    voice-agent rules [list|add|delete]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from voice_agent.agent.locale import resolve_language
from voice_agent.config import AgentConfig, AgentConfigStore, load_settings
from voice_agent.errors import ConfigError
from voice_agent.logging_utils import configure_logging
from voice_agent.providers import create_chat_model
from voice_agent.session import ConversationPipeline, SessionController
from voice_agent.store import ConversationStore, PendingQueue, RulesStore
from voice_agent.tools import ToolRegistry

if TYPE_CHECKING:
    from voice_agent.config import Settings
    from voice_agent.session import SessionState

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"/quit", "/exit"}


class ConsoleRecognizer:
    """Reads an utterance from stdin."""

    async def listen(self, language: str) -> str:
        return await asyncio.to_thread(input, "you (voice)> ")

    async def cancel(self) -> None:
        return None


class ConsoleNarrator:
    """Prints narrated text instead of speaking it."""

    async def speak(self, text: str, language: str) -> None:
        print(f"[speaking] {text}")

    async def stop(self) -> None:
        return None


def _print_transcript(role: str, text: str) -> None:
    print(f"{role}> {text}")


def _print_state(state: SessionState) -> None:
    logger.debug("state: %s", state.value)


def _build_controller(
    settings: Settings, config: AgentConfig, *, driving: bool, narrate: bool
) -> SessionController:
    model = create_chat_model(config)
    tools = ToolRegistry()
    tools.remove_disabled(config.enabled_features)
    pipeline = ConversationPipeline(
        model,
        tools,
        driving_mode=driving or config.driving_mode,
        language=resolve_language(config.language),
        max_iterations=config.iteration_limits.interactive,
        max_history_messages=settings.max_history_messages,
    )
    controller = SessionController(
        pipeline,
        ConsoleRecognizer(),
        ConsoleNarrator() if narrate else None,
        settle_delay=settings.settle_delay_seconds,
        pending=PendingQueue(settings.pending_path, settings.max_pending_messages),
        history_store=ConversationStore(settings.history_path, settings.max_stored_history),
        on_state=_print_state,
        on_transcript=_print_transcript,
        on_error=lambda message: print(f"error: {message}", file=sys.stderr),
    )
    restored = controller.restore_history()
    if restored:
        logger.info("Restored %d message(s) of history", restored)
    return controller


async def _chat(settings: Settings, args: argparse.Namespace) -> int:
    try:
        config = AgentConfigStore(settings.agent_config_path).load_required()
        controller = _build_controller(
            settings, config, driving=args.driving, narrate=args.driving or args.voice
        )
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    await controller.resume()
    print("Type a message (/quit to exit).")
    while True:
        if args.voice:
            await controller.press_mic()
            task = controller.auto_listen_task
            if task is not None and not task.done():
                await task
        else:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            if line.strip() in EXIT_COMMANDS:
                break
            await controller.submit_text(line)
        await controller.resume()
    return 0


def _pending(settings: Settings, args: argparse.Namespace) -> int:
    queue = PendingQueue(settings.pending_path, settings.max_pending_messages)
    entries = queue.peek() if args.peek else queue.drain()
    if not entries:
        print("No pending messages.")
        return 0
    for entry in entries:
        print(f"[{entry.timestamp}] {entry.role}: {entry.text}")
    return 0


def _rules(settings: Settings, args: argparse.Namespace) -> int:
    store = RulesStore(settings.rules_path)
    action = args.rules_action or "list"
    if action == "add":
        rule = store.add_rule(
            target_source=args.source,
            instruction=args.instruction,
            human_label=args.label or "",
            condition=args.condition or "",
        )
        print(f"Added {rule.id}")
        return 0
    if action == "delete":
        if not store.delete_rule(args.rule_id):
            print(f"Unknown rule: {args.rule_id}", file=sys.stderr)
            return 1
        print(f"Deleted {args.rule_id}")
        return 0

    rules = store.load_rules()
    if not rules:
        print("No notification rules.")
    for rule in rules:
        state = "on " if rule.enabled else "off"
        condition = rule.condition or "(always)"
        label = rule.human_label or rule.target_source
        print(f"{rule.id} [{state}] {label}: if {condition} -> {rule.instruction}")
    print(f"Subscribed sources: {', '.join(store.subscribed_sources()) or '(none)'}")
    return 0


def _configure(settings: Settings, args: argparse.Namespace) -> int:
    store = AgentConfigStore(settings.agent_config_path)
    try:
        current = store.load() or AgentConfig()
    except ConfigError as exc:
        print(f"warning: {exc}; starting from defaults", file=sys.stderr)
        current = AgentConfig()
    updates = {
        key: value
        for key, value in (
            ("provider", args.provider),
            ("api_key", args.api_key),
            ("model", args.model),
            ("language", args.language),
            ("ollama_host", args.ollama_host),
            ("driving_mode", args.driving),
        )
        if value is not None
    }
    config = AgentConfig.model_validate({**current.model_dump(), **updates})
    store.save(config)
    print(f"Saved {store.path} (provider={config.provider}, model={config.resolved_model})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voice-agent", description="Voice assistant agent core")
    parser.add_argument("--log-level", help="Override VOICE_AGENT_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Interactive session on the console")
    chat.add_argument("--driving", action="store_true", help="Hands-free driving mode")
    chat.add_argument(
        "--voice", action="store_true", help="Use the mic flow instead of typed turns"
    )

    pending = subparsers.add_parser("pending", help="Drain and print background results")
    pending.add_argument("--peek", action="store_true", help="Print without clearing")

    rules = subparsers.add_parser("rules", help="Manage notification rules")
    rules_sub = rules.add_subparsers(dest="rules_action")
    rules_sub.add_parser("list", help="List rules and subscribed sources")
    add = rules_sub.add_parser("add", help="Add a rule")
    add.add_argument("--source", required=True, help="App identifier, e.g. com.whatsapp")
    add.add_argument("--instruction", required=True)
    add.add_argument("--condition")
    add.add_argument("--label")
    delete = rules_sub.add_parser("delete", help="Delete a rule")
    delete.add_argument("rule_id")

    configure = subparsers.add_parser("configure", help="Write the persisted agent config")
    configure.add_argument("--provider", choices=["claude", "openai", "ollama"])
    configure.add_argument("--api-key")
    configure.add_argument("--model")
    configure.add_argument("--language")
    configure.add_argument("--ollama-host")
    configure.add_argument(
        "--driving", action=argparse.BooleanOptionalAction, default=None, help="Driving mode"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(args.log_level or settings.log_level)

    if args.command == "chat":
        return asyncio.run(_chat(settings, args))
    if args.command == "pending":
        return _pending(settings, args)
    if args.command == "rules":
        return _rules(settings, args)
    return _configure(settings, args)


if __name__ == "__main__":
    raise SystemExit(main())
