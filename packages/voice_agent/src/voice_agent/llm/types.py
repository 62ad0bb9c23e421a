"""Conversation and model-call types.

Messages are append-only and their order is the ground truth of a
conversation. Tool results are linked to the assistant call that requested
them through ``tool_call_id``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable

Role = Literal["system", "user", "assistant", "tool"]
FinishReason = Literal["stop", "tool_calls", "length", "error"]
JSONSchema = dict[str, Any]


@dataclass(frozen=True)
class ToolCall:
    """A single capability invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Message:
    """One conversation entry.

    Attributes:
        role: Conversation role.
        content: Text content (may be empty for calls-only assistant turns).
        tool_calls: Calls carried by an assistant message.
        tool_call_id: For ``tool`` messages, the id of the call being answered.
        is_error: For ``tool`` messages, whether the capability failed.
    """

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    is_error: bool = False

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: tuple[ToolCall, ...] = ()) -> Message:
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str, *, is_error: bool = False) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id, is_error=is_error)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class ToolDefinition:
    """Schema-bearing description of a capability, as presented to the model."""

    name: str
    description: str
    parameters: JSONSchema

    def to_spec(self) -> dict[str, Any]:
        """Return the strands tool spec for this definition."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {"json": self.parameters},
        }


@dataclass(frozen=True)
class Usage:
    """Token usage reported by a model call."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class ChatOptions:
    """Per-call overrides for a model call."""

    max_tokens: int | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class ChatResponse:
    """Aggregated result of a single model call."""

    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    finish_reason: FinishReason = "stop"
    usage: Usage | None = None


@runtime_checkable
class ChatModel(Protocol):
    """Chat-completion capability consumed by the loop engine.

    Implementations must not raise on ordinary model responses. A raised
    exception is fatal to the current loop iteration and propagates to the
    caller of the loop.
    """

    @property
    def default_model(self) -> str: ...

    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        model: str | None = None,
        options: ChatOptions | None = None,
    ) -> ChatResponse: ...
