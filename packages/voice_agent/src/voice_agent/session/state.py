"""Session states and the collaborator contracts the controller consumes."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Protocol, runtime_checkable


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"


@runtime_checkable
class SpeechRecognizer(Protocol):
    """Speech capture backend.

    ``listen`` returns the recognised utterance (possibly empty). It may raise
    ``CaptureError``; transient errors mean nothing was said.
    """

    async def listen(self, language: str) -> str: ...

    async def cancel(self) -> None: ...


@runtime_checkable
class Narrator(Protocol):
    """Text-to-speech backend. ``speak`` returns when playback has finished."""

    async def speak(self, text: str, language: str) -> None: ...

    async def stop(self) -> None: ...


QuestionPredicate = Callable[[str], bool]

_QUESTION_MARKS = ("?", "¿", "？")


def is_question(text: str) -> bool:
    """Return True when the text ends with or contains an interrogation mark."""
    stripped = text.strip()
    if not stripped:
        return False
    return stripped.endswith(_QUESTION_MARKS) or any(mark in stripped for mark in _QUESTION_MARKS)
