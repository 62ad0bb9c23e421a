"""Scripted stand-ins for the model and the platform seams used in tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from voice_agent.errors import CaptureError, UIDriverError
from voice_agent.llm.types import ChatResponse, Message, ToolCall, ToolDefinition

ResponseStep = ChatResponse | Exception | Callable[[list[Message]], ChatResponse]


def text_response(text: str) -> ChatResponse:
    return ChatResponse(content=text)


def call_response(
    name: str,
    arguments: dict[str, Any] | None = None,
    call_id: str = "c1",
    text: str = "",
) -> ChatResponse:
    return ChatResponse(
        content=text,
        tool_calls=(ToolCall(id=call_id, name=name, arguments=arguments or {}),),
        finish_reason="tool_calls",
    )


class ScriptedModel:
    """Chat model that replays scripted responses and records every call.

    With ``repeat_last`` the final step is returned forever instead of being consumed.
    """

    def __init__(self, steps: list[ResponseStep], *, repeat_last: bool = False) -> None:
        self._steps = list(steps)
        self._repeat_last = repeat_last
        self.calls: list[dict[str, Any]] = []

    @property
    def default_model(self) -> str:
        return "scripted"

    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        model: str | None = None,
        options: Any = None,
    ) -> ChatResponse:
        self.calls.append({"messages": list(messages), "tools": list(tools), "model": model})
        if not self._steps:
            msg = "ScriptedModel ran out of responses"
            raise AssertionError(msg)
        if self._repeat_last and len(self._steps) == 1:
            step = self._steps[0]
        else:
            step = self._steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(messages)
        return step


class FakeRecognizer:
    def __init__(self, utterances: list[str | CaptureError] | None = None) -> None:
        self.utterances = list(utterances or [])
        self.listen_calls = 0
        self.cancelled = 0

    async def listen(self, language: str) -> str:
        self.listen_calls += 1
        if not self.utterances:
            return ""
        item = self.utterances.pop(0)
        if isinstance(item, CaptureError):
            raise item
        return item

    async def cancel(self) -> None:
        self.cancelled += 1


class FakeNarrator:
    def __init__(self) -> None:
        self.spoken: list[str] = []
        self.stopped = 0

    async def speak(self, text: str, language: str) -> None:
        self.spoken.append(text)

    async def stop(self) -> None:
        self.stopped += 1


class FakeDriver:
    def __init__(
        self,
        trees: list[str] | None = None,
        *,
        enabled: bool = True,
        visible: bool = True,
    ) -> None:
        self.trees = list(trees or ["[node_1] Button 'Send'"])
        self.enabled = enabled
        self.visible = visible
        self.actions: list[tuple[str, str | None, str | None]] = []
        self.opened: list[tuple[str, str | None, str | None]] = []
        self.fail_actions = False

    async def is_service_enabled(self) -> bool:
        return self.enabled

    async def open_target(
        self, target: str, intent_action: str | None, intent_uri: str | None
    ) -> None:
        self.opened.append((target, intent_action, intent_uri))

    async def wait_for_target(self, target: str, timeout: float) -> bool:
        return self.visible

    async def capture_tree(self) -> str:
        if len(self.trees) > 1:
            return self.trees.pop(0)
        return self.trees[0]

    async def perform_action(self, action: str, node_id: str, text: str | None) -> str:
        if self.fail_actions:
            msg = "node not found"
            raise UIDriverError(msg)
        self.actions.append((action, node_id, text))
        return f"{action} on {node_id} ok"

    async def perform_global_action(self, action: str, text: str | None) -> str:
        self.actions.append((action, None, text))
        return f"{action} ok"

    async def gesture(
        self, x: int, y: int, end_x: int | None, end_y: int | None, duration_ms: int
    ) -> str:
        self.actions.append(("gesture", f"{x},{y}", None))
        return "gesture ok"


class FakeBridge:
    def __init__(self) -> None:
        self.resumes = 0

    async def request_resume(self) -> None:
        self.resumes += 1
