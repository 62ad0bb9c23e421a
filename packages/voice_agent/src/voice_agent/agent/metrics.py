"""Tool-call loop metrics capture and formatting."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from voice_agent.llm.types import Usage

StopReason = Literal["end_turn", "early_exit", "max_iterations"]


@dataclass(frozen=True)
class LoopMetrics:
    """Normalized metrics from one loop invocation."""

    iterations: int
    """Number of model calls made."""

    duration_ms: float
    """Total execution time in milliseconds."""

    input_tokens: int
    """Total input tokens consumed."""

    output_tokens: int
    """Total output tokens generated."""

    stop_reason: StopReason
    """Why the loop returned."""

    tool_calls: dict[str, int] = field(default_factory=dict)
    """Call count per tool name."""

    tool_errors: int = 0
    """Number of tool executions that returned an error result."""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def format_summary(self) -> str:
        """Format metrics as a human-readable summary string.

        Returns:
            String like "Tokens: 150 in / 89 out | Iterations: 2 | 1.2s | end_turn"
        """
        duration_s = self.duration_ms / 1000
        return (
            f"Tokens: {self.input_tokens} in / {self.output_tokens} out | "
            f"Iterations: {self.iterations} | {duration_s:.1f}s | {self.stop_reason}"
        )

    def format_tool_summary(self) -> str:
        """Format tool usage as a summary string.

        Returns:
            String like "Tools: open_app (1), accessibility_action (3)"
        """
        if not self.tool_calls:
            return "Tools: none"
        parts = [f"{name} ({count})" for name, count in self.tool_calls.items()]
        return f"Tools: {', '.join(parts)}"


class MetricsRecorder:
    """Mutable accumulator the loop feeds while it runs."""

    def __init__(self) -> None:
        self._started = time.perf_counter()
        self._iterations = 0
        self._input_tokens = 0
        self._output_tokens = 0
        self._tool_calls: dict[str, int] = {}
        self._tool_errors = 0

    def record_model_call(self, usage: Usage | None) -> None:
        self._iterations += 1
        if usage is not None:
            self._input_tokens += usage.input_tokens
            self._output_tokens += usage.output_tokens

    def record_tool_call(self, name: str, *, is_error: bool) -> None:
        self._tool_calls[name] = self._tool_calls.get(name, 0) + 1
        if is_error:
            self._tool_errors += 1

    def finish(self, stop_reason: StopReason) -> LoopMetrics:
        return LoopMetrics(
            iterations=self._iterations,
            duration_ms=(time.perf_counter() - self._started) * 1000,
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            stop_reason=stop_reason,
            tool_calls=dict(self._tool_calls),
            tool_errors=self._tool_errors,
        )
