"""Tool-call loop engine.

One invocation alternates model calls and tool executions until the model
answers without tool calls, an early-exit predicate fires after a batch of
tool executions, or the iteration ceiling is reached. Exhausting the ceiling
is a soft failure reported through ``LoopResult.exhausted``.

Model-call errors are not caught here; they propagate to the caller.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from voice_agent.agent.metrics import MetricsRecorder
from voice_agent.llm.types import ChatOptions, Message
from voice_agent.utils import truncate

if TYPE_CHECKING:
    from voice_agent.agent.metrics import LoopMetrics
    from voice_agent.llm.types import ChatModel
    from voice_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

UserMessageCallback = Callable[[str], "Awaitable[None] | None"]


@dataclass
class ToolLoopConfig:
    """Everything a loop invocation needs besides the starting messages.

    Attributes:
        model: Chat-completion capability.
        tools: Registry view used for definitions and execution. Read-only for
            the duration of the run.
        max_iterations: Hard ceiling on model calls.
        model_id: Optional model override passed to every call.
        options: Optional per-call overrides.
        should_exit: Checked after each batch of tool executions.
        exit_content: Supplies the final content when ``should_exit`` fires.
        on_user_message: Called with a tool's ``for_user`` text as soon as the
            tool returns.
    """

    model: ChatModel
    tools: ToolRegistry
    max_iterations: int = 10
    model_id: str | None = None
    options: ChatOptions | None = None
    should_exit: Callable[[], bool] | None = None
    exit_content: Callable[[], str | None] | None = None
    on_user_message: UserMessageCallback | None = None

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            msg = "max_iterations must be at least 1"
            raise ValueError(msg)


@dataclass(frozen=True)
class LoopResult:
    """Outcome of one loop invocation.

    ``produced_messages`` holds only calls-bearing assistant turns and their
    tool results. The final text-only assistant turn is not included.
    """

    final_content: str
    iterations_used: int
    produced_messages: tuple[Message, ...]
    metrics: LoopMetrics

    @property
    def exhausted(self) -> bool:
        """True when the ceiling was reached without a normal or early exit."""
        return self.metrics.stop_reason == "max_iterations"


async def _notify_user(callback: UserMessageCallback, text: str) -> None:
    try:
        outcome = callback(text)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        logger.warning("User message callback failed", exc_info=True)


async def run_tool_loop(config: ToolLoopConfig, messages: list[Message]) -> LoopResult:
    """Run the tool-call loop against a copy of ``messages``.

    Args:
        config: Loop configuration.
        messages: Initial conversation (system prompt, history, user turn).
            The caller's list is never mutated.

    Returns:
        LoopResult with the final text, the iteration count and the messages
        produced by tool-calling turns.
    """
    history = list(messages)
    produced: list[Message] = []
    final_content = ""
    recorder = MetricsRecorder()
    definitions = config.tools.definitions()

    for iteration in range(1, config.max_iterations + 1):
        logger.debug(
            "Iteration %d/%d: calling model with %d messages and %d tools",
            iteration,
            config.max_iterations,
            len(history),
            len(definitions),
        )
        response = await config.model.chat(
            history,
            definitions,
            model=config.model_id,
            options=config.options,
        )
        recorder.record_model_call(response.usage)

        if response.content:
            final_content = response.content

        if not response.tool_calls:
            logger.debug("Model answered without tool calls: %s", truncate(response.content, 200))
            return LoopResult(
                final_content=response.content,
                iterations_used=iteration,
                produced_messages=tuple(produced),
                metrics=recorder.finish("end_turn"),
            )

        assistant = Message.assistant(response.content, response.tool_calls)
        history.append(assistant)
        produced.append(assistant)

        for call in response.tool_calls:
            logger.debug("Tool call %s(%s)", call.name, truncate(str(call.arguments), 200))
            result = await config.tools.execute(call.name, dict(call.arguments))
            recorder.record_tool_call(call.name, is_error=result.is_error)
            logger.debug(
                "Tool result %s [%s]: %s",
                call.name,
                "error" if result.is_error else "ok",
                truncate(result.for_model, 200),
            )
            tool_message = Message.tool(call.id, result.for_model, is_error=result.is_error)
            history.append(tool_message)
            produced.append(tool_message)
            if result.for_user and config.on_user_message is not None:
                await _notify_user(config.on_user_message, result.for_user)

        if config.should_exit is not None and config.should_exit():
            exit_text = config.exit_content() if config.exit_content is not None else None
            logger.debug("Early exit after iteration %d", iteration)
            return LoopResult(
                final_content=exit_text or final_content,
                iterations_used=iteration,
                produced_messages=tuple(produced),
                metrics=recorder.finish("early_exit"),
            )

    logger.warning("Tool loop reached the iteration limit (%d)", config.max_iterations)
    return LoopResult(
        final_content=final_content,
        iterations_used=config.max_iterations,
        produced_messages=tuple(produced),
        metrics=recorder.finish("max_iterations"),
    )
