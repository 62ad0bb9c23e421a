"""Chat model adapter over a Strands model provider.

The loop engine works with whole responses, so the adapter drains the
Strands event stream and folds it into a single :class:`ChatResponse`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from voice_agent.errors import ModelCallError
from voice_agent.llm.codec import convert_to_strands_messages, convert_tool_specs
from voice_agent.llm.types import ChatResponse, ToolCall, Usage

if TYPE_CHECKING:
    from strands.models.model import Model

    from voice_agent.llm.types import ChatOptions, FinishReason, Message, ToolDefinition

logger = logging.getLogger(__name__)

STOP_REASON_MAP: dict[str, FinishReason] = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "tool_use": "tool_calls",
    "max_tokens": "length",
}


@dataclass
class _PendingToolUse:
    tool_use_id: str
    name: str
    input_chunks: list[str] = field(default_factory=list)

    def finish(self) -> ToolCall:
        raw = "".join(self.input_chunks).strip()
        arguments: dict[str, Any] = {}
        if raw:
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Discarding malformed tool input for %s: %s", self.name, raw)
            else:
                if isinstance(parsed, dict):
                    arguments = parsed
        return ToolCall(id=self.tool_use_id, name=self.name, arguments=arguments)


@dataclass
class StreamAccumulator:
    """Fold Strands stream events into text, tool calls, stop reason and usage."""

    text_parts: list[str] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str = "end_turn"
    usage: Usage | None = None
    _current_tool: _PendingToolUse | None = None

    def add(self, event: dict[str, Any]) -> None:
        """Consume one Strands stream event."""
        if "contentBlockStart" in event:
            start = event["contentBlockStart"].get("start", {})
            tool_use = start.get("toolUse")
            if isinstance(tool_use, dict):
                self._current_tool = _PendingToolUse(
                    tool_use_id=str(tool_use.get("toolUseId", "")),
                    name=str(tool_use.get("name", "")),
                )
        elif "contentBlockDelta" in event:
            delta = event["contentBlockDelta"].get("delta", {})
            if "text" in delta:
                self.text_parts.append(str(delta["text"]))
            tool_delta = delta.get("toolUse")
            if isinstance(tool_delta, dict) and self._current_tool is not None:
                self._current_tool.input_chunks.append(str(tool_delta.get("input", "")))
        elif "contentBlockStop" in event:
            if self._current_tool is not None:
                self.tool_calls.append(self._current_tool.finish())
                self._current_tool = None
        elif "messageStop" in event:
            self.stop_reason = str(event["messageStop"].get("stopReason", "end_turn"))
        elif "metadata" in event:
            usage = event["metadata"].get("usage") or {}
            self.usage = Usage(
                input_tokens=int(usage.get("inputTokens", 0)),
                output_tokens=int(usage.get("outputTokens", 0)),
                total_tokens=int(usage.get("totalTokens", 0)),
            )

    def to_response(self) -> ChatResponse:
        """Build the aggregated chat response."""
        finish_reason = STOP_REASON_MAP.get(self.stop_reason, "stop")
        if self.tool_calls:
            finish_reason = "tool_calls"
        return ChatResponse(
            content="".join(self.text_parts),
            tool_calls=tuple(self.tool_calls),
            finish_reason=finish_reason,
            usage=self.usage,
        )


class StrandsChatModel:
    """:class:`~voice_agent.llm.types.ChatModel` backed by a Strands ``Model``."""

    def __init__(self, model: Model, model_id: str) -> None:
        self._model = model
        self._model_id = model_id

    @property
    def default_model(self) -> str:
        return self._model_id

    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        model: str | None = None,
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        """Run one model call and return the aggregated response.

        ``model`` and ``options`` apply to this call only; the previous
        configuration is restored afterwards.
        """
        model_id = model or self._model_id
        strands_messages, system_prompt = convert_to_strands_messages(messages)
        tool_specs = convert_tool_specs(tools) if tools else None

        accumulator = StreamAccumulator()
        restore = self._apply_overrides(model, options)
        try:
            async for event in self._model.stream(
                strands_messages,
                tool_specs=tool_specs,
                system_prompt=system_prompt,
            ):
                accumulator.add(event)
        except Exception as exc:
            logger.exception("Model call failed (%s)", model_id)
            msg = f"Model call failed: {exc}"
            raise ModelCallError(msg) from exc
        finally:
            if restore:
                self._model.update_config(**restore)

        return accumulator.to_response()

    def _apply_overrides(self, model: str | None, options: ChatOptions | None) -> dict[str, Any]:
        """Apply per-call overrides and return the config that undoes them."""
        overrides: dict[str, Any] = {}
        if model and model != self._model_id:
            overrides["model_id"] = model
        if options is not None:
            params: dict[str, Any] = {}
            if options.max_tokens is not None:
                params["max_tokens"] = options.max_tokens
            if options.temperature is not None:
                params["temperature"] = options.temperature
            if params:
                overrides["params"] = params
        if not overrides:
            return {}
        previous = self._model.get_config()
        restore = {key: previous.get(key) for key in overrides}
        if "params" in restore:
            restore["params"] = restore["params"] or {}
        if "model_id" in restore:
            restore["model_id"] = restore["model_id"] or self._model_id
        self._model.update_config(**overrides)
        return restore
