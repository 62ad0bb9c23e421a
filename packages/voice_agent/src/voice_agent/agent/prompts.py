"""System prompts and short model-phrased texts.

Prompts built here carry instructions only. Anything that changes while a
run is in progress (UI snapshots, event payloads) is sent as a conversation
message instead.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from voice_agent.agent.locale import language_name
from voice_agent.llm.types import Message

if TYPE_CHECKING:
    from voice_agent.llm.types import ChatModel
    from voice_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"

DRIVING_MODE_STYLE = """**DRIVING MODE ACTIVE**
- **Headline style.** Drop articles, auxiliary verbs and filler words.
- MAX 1 sentence (2 only if a follow-up question is needed).
- No Markdown, no lists, no headings, no preamble.
- If you need more info from the user, ask in ONE short question.
- Write times so they read naturally when spoken aloud.
- **Always use correct punctuation.** End statements with a period (.) and questions with a \
question mark (?). The app uses punctuation to detect whether you are asking something."""

NORMAL_MODE_STYLE = """**Normal Mode**
- You may use Markdown formatting (headings, lists, code blocks, bold).
- Respond in detail when helpful."""


def output_style(driving_mode: bool) -> str:
    """Return the operating-mode section shared by every prompt."""
    return DRIVING_MODE_STYLE if driving_mode else NORMAL_MODE_STYLE


def _persona_section(persona: str | None) -> str | None:
    text = (persona or "").strip()
    if not text:
        return None
    return (
        "## Persona\n\n"
        "Follow this persona/tone unless it conflicts with higher-priority rules "
        "(tool execution, safety, language policy).\n\n"
        f"{text}"
    )


def _memory_section(personal_memory: str | None) -> str | None:
    text = (personal_memory or "").strip()
    if not text:
        return None
    return (
        "## Personal Memory (read-only)\n\n"
        "Durable user context (name, family, work, location, preferences, important dates).\n\n"
        f"{text}"
    )


def build_system_prompt(
    tools: ToolRegistry,
    *,
    driving_mode: bool,
    language: str | None,
    persona: str | None = None,
    personal_memory: str | None = None,
    now: datetime | None = None,
) -> str:
    """Assemble the interactive system prompt.

    Args:
        tools: Registry whose summaries are listed.
        driving_mode: Hands-free, spoken output style.
        language: BCP-47 tag or ``system``.
        persona: Optional user-defined persona instructions.
        personal_memory: Optional personal facts block.
        now: Clock override (tests).
    """
    current = now or datetime.now().astimezone()
    parts = [
        "# Voice Assistant\n\n"
        "You are a personal AI assistant. You are primarily operated by voice.\n\n"
        "## Current Time\n"
        f"{current.strftime('%A, %B %d, %Y %H:%M')}\n"
        f"**Today is: {current.date().isoformat()}** (use this date for all date calculations)\n\n"
        "## Operating Mode\n"
        f"{output_style(driving_mode)}\n\n"
        "## Important Rules\n\n"
        "1. **ALWAYS use tools** - If you need to perform an action, use the appropriate tool. "
        "Never just say you would do it.\n"
        f"2. **Language** - You MUST respond in **{language_name(language)}**, regardless of the "
        "language the user writes in, unless the user explicitly asks you to switch.\n"
        "3. **Errors** - When something goes wrong, clearly tell the user what happened."
    ]
    for section in (_persona_section(persona), _memory_section(personal_memory)):
        if section:
            parts.append(section)

    summaries = tools.summaries()
    if summaries:
        parts.append(
            "## Available Tools\n\n"
            "**IMPORTANT**: Use tools to perform actions. Do NOT just describe actions in text.\n\n"
            + "\n".join(summaries)
        )
    return SECTION_SEPARATOR.join(parts)


async def _phrase(model: ChatModel, system_prompt: str, user_prompt: str, fallback: str) -> str:
    try:
        response = await model.chat(
            [Message.system(system_prompt), Message.user(user_prompt)],
            [],
        )
    except Exception:
        logger.warning("Phrasing call failed; using fallback text", exc_info=True)
        return fallback
    return response.content.strip() or fallback


async def formulate_response(
    model: ChatModel,
    *,
    goal: str,
    target: str,
    status: str,
    raw_message: str,
    driving_mode: bool,
    language: str | None,
) -> str:
    """Phrase a background outcome as one plain-language sentence.

    Falls back to ``raw_message`` if the model call fails or returns nothing.
    """
    system_prompt = "\n\n".join(
        [
            "You are a friendly AI assistant confirming the outcome of a background task.",
            f"## Operating Mode\n{output_style(driving_mode)}",
            "## Important Rules\n"
            f"1. **Language** - You MUST respond in **{language_name(language)}**.\n"
            "2. Base your reply on what the USER wanted to achieve (the Goal), not on the "
            "technical steps the automation took.\n"
            "3. Do NOT mention clicking, typing, tapping, nodes, buttons or any UI internals.\n"
            "4. On success: confirm the user's intent was fulfilled in one short sentence.\n"
            "5. On failure: explain what did NOT work in plain language, in one short sentence.\n"
            '6. Refer to the app by its common name (e.g. "com.whatsapp" is "WhatsApp").',
        ]
    )
    user_prompt = f"App: {target}\nGoal: {goal}\nStatus: {status}\nRaw result: {raw_message}"
    logger.debug("Formulating %s response for %r", status, goal)
    return await _phrase(model, system_prompt, user_prompt, raw_message)


async def generate_announcement(
    model: ChatModel,
    *,
    app_name: str,
    sender: str,
    preview: str,
    driving_mode: bool,
    language: str | None,
) -> str:
    """Produce one short spoken sentence acknowledging an incoming notification."""
    fallback = f"{app_name} from {sender} received, processing."
    system_prompt = (
        "You are a friendly AI assistant acknowledging receipt of a notification.\n\n"
        f"## Operating Mode\n{output_style(driving_mode)}\n\n"
        "## Important Rules\n"
        f"1. **Language** - You MUST respond in **{language_name(language)}**.\n"
        "2. Generate exactly ONE short spoken sentence (max 10 words) acknowledging receipt "
        "and that you are now processing it.\n"
        "3. No markdown."
    )
    user_prompt = f"App: {app_name}\nSender: {sender}\n"
    if preview:
        user_prompt += f"Preview: {preview[:80]}\n"
    return await _phrase(model, system_prompt, user_prompt, fallback)
