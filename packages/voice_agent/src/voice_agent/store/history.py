"""Persisted conversation history (single writer: the foreground session)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from voice_agent.store.files import read_json, write_json_atomic
from voice_agent.store.messages import StoredMessage, parse_entries

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

MAX_HISTORY = 50


class ConversationStore:
    """Keeps the most recent user/assistant entries shown in the transcript."""

    def __init__(self, path: str | Path, max_entries: int = MAX_HISTORY) -> None:
        self._path = Path(path)
        self._max_entries = max_entries

    def save_history(self, messages: Sequence[StoredMessage]) -> None:
        """Persist the history, keeping only the newest entries."""
        truncated = list(messages)[-self._max_entries :]
        write_json_atomic(self._path, [item.to_dict() for item in truncated])

    def load_history(self) -> list[StoredMessage]:
        """Load the history, dropping malformed entries. Missing file gives []."""
        try:
            return parse_entries(read_json(self._path))
        except (OSError, ValueError):
            logger.warning("Conversation history at %s is unreadable", self._path)
            return []

    def append(self, message: StoredMessage) -> None:
        self.save_history([*self.load_history(), message])

    def clear_history(self) -> None:
        self._path.unlink(missing_ok=True)
