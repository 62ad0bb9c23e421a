"""Conversation pipeline: one loop invocation per user turn.

The pipeline owns the in-memory message history used as model context. The
history keeps calls-bearing assistant turns and their tool results so the
model sees what it already did, and is trimmed so it never starts with a
tool result whose call was cut off.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from voice_agent.agent.loop import ToolLoopConfig, run_tool_loop
from voice_agent.agent.prompts import build_system_prompt
from voice_agent.llm.types import Message

if TYPE_CHECKING:
    from collections.abc import Iterable

    from voice_agent.agent.loop import LoopResult, UserMessageCallback
    from voice_agent.llm.types import ChatModel
    from voice_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

EMPTY_REPLY_FALLBACK = "Task started."
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_MAX_HISTORY = 20


def trim_history(history: list[Message], max_messages: int) -> list[Message]:
    """Keep the newest ``max_messages`` entries without orphaning tool results.

    After the cut, the start is advanced past leading ``tool`` messages and
    calls-bearing ``assistant`` messages so the kept history begins with a
    user message or a plain assistant message.
    """
    if len(history) <= max_messages:
        return list(history)
    start = len(history) - max_messages
    while start < len(history):
        message = history[start]
        if message.role == "tool" or (message.role == "assistant" and message.has_tool_calls):
            start += 1
            continue
        break
    return history[start:]


class ConversationPipeline:
    """Builds the prompt, runs the tool loop and maintains model history."""

    def __init__(
        self,
        model: ChatModel,
        tools: ToolRegistry,
        *,
        model_id: str | None = None,
        driving_mode: bool = False,
        language: str = "en-US",
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        max_history_messages: int = DEFAULT_MAX_HISTORY,
        persona: str | None = None,
        personal_memory: str | None = None,
        on_user_message: UserMessageCallback | None = None,
    ) -> None:
        self._model = model
        self._tools = tools
        self._model_id = model_id
        self._driving_mode = driving_mode
        self._language = language
        self._max_iterations = max_iterations
        self._max_history = max_history_messages
        self._persona = persona
        self._personal_memory = personal_memory
        self._on_user_message = on_user_message
        self._history: list[Message] = []
        self._last_result: LoopResult | None = None

    @property
    def driving_mode(self) -> bool:
        return self._driving_mode

    def set_driving_mode(self, enabled: bool) -> None:
        self._driving_mode = enabled

    @property
    def language(self) -> str:
        return self._language

    @property
    def max_history_messages(self) -> int:
        return self._max_history

    @property
    def last_result(self) -> LoopResult | None:
        """Loop result of the most recent successful turn."""
        return self._last_result

    def set_user_message_callback(self, callback: UserMessageCallback | None) -> None:
        self._on_user_message = callback

    def system_prompt(self) -> str:
        return build_system_prompt(
            self._tools,
            driving_mode=self._driving_mode,
            language=self._language,
            persona=self._persona,
            personal_memory=self._personal_memory,
        )

    async def run_turn(self, user_text: str) -> str:
        """Run one user turn and return the assistant reply.

        On failure an error note is appended to the history so the model has
        context on the next turn, and the exception is re-raised.
        """
        user_message = Message.user(user_text)
        messages = [Message.system(self.system_prompt()), *self._history, user_message]
        self._history.append(user_message)

        config = ToolLoopConfig(
            model=self._model,
            tools=self._tools,
            max_iterations=self._max_iterations,
            model_id=self._model_id,
            on_user_message=self._on_user_message,
        )
        try:
            result = await run_tool_loop(config, messages)
        except Exception as exc:
            logger.exception("Turn failed")
            self._history.append(
                Message.assistant(f"[Error: {exc}] I was unable to process the request.")
            )
            self._history = trim_history(self._history, self._max_history)
            raise

        self._last_result = result
        logger.info("Turn finished: %s", result.metrics.format_summary())
        reply = result.final_content or EMPTY_REPLY_FALLBACK
        self._history.extend(result.produced_messages)
        self._history.append(Message.assistant(reply))
        self._history = trim_history(self._history, self._max_history)
        return reply

    def clear_history(self) -> None:
        self._history = []

    def export_history(self) -> list[Message]:
        """Return a copy of the model history in order."""
        return list(self._history)

    def import_history(self, messages: Iterable[Message], cap: int | None = None) -> None:
        """Replace the history, keeping only the newest ``cap`` entries when given."""
        imported = list(messages)
        if cap is not None:
            imported = trim_history(imported, cap)
        self._history = imported

    def append_to_history(self, messages: Iterable[Message]) -> None:
        """Append messages (for example drained background results) and trim."""
        self._history.extend(messages)
        self._history = trim_history(self._history, self._max_history)
