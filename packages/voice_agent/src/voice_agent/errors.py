"""Exception hierarchy for the voice agent core."""

from __future__ import annotations


class VoiceAgentError(Exception):
    """Base class for all voice agent errors."""


class ConfigError(VoiceAgentError):
    """Raised when persisted or environment configuration is missing or invalid."""


class ModelCallError(VoiceAgentError):
    """Raised when the chat model call fails.

    Never raised for capability failures; those become error results.
    """


class CaptureError(VoiceAgentError):
    """Raised by speech capture backends.

    Attributes:
        transient: True for ordinary silence ("no speech detected"). Transient
            errors are treated as an empty utterance, not as a failure.
    """

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class UIDriverError(VoiceAgentError):
    """Raised by the accessibility bridge when a UI operation fails."""
