"""Pending-delivery queue.

Background runs only append; the foreground session only drains. Appends
from concurrent background runs are serialised by a process-wide lock and
written with an atomic replace, keeping the last ``max_entries`` entries.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from voice_agent.store.files import read_json, write_json_atomic
from voice_agent.store.messages import StoredMessage, StoredRole, parse_entries

logger = logging.getLogger(__name__)

MAX_PENDING = 10

_QUEUE_LOCK = threading.Lock()


class PendingQueue:
    """Bounded hand-off buffer from background runs to the foreground."""

    def __init__(self, path: str | Path, max_entries: int = MAX_PENDING) -> None:
        self._path = Path(path)
        self._max_entries = max_entries

    @property
    def path(self) -> Path:
        return self._path

    def _read_entries(self) -> list[StoredMessage]:
        try:
            return parse_entries(read_json(self._path))
        except (OSError, ValueError):
            logger.warning("Pending queue at %s is unreadable; starting empty", self._path)
            return []

    def append(self, role: StoredRole, text: str) -> StoredMessage:
        """Append one entry and truncate the queue to the newest entries."""
        entry = StoredMessage.now(role, text)
        with _QUEUE_LOCK:
            entries = [*self._read_entries(), entry][-self._max_entries :]
            write_json_atomic(self._path, [item.to_dict() for item in entries])
        logger.debug("Queued %s message for foreground delivery", role)
        return entry

    def peek(self) -> list[StoredMessage]:
        """Return pending entries without clearing them."""
        with _QUEUE_LOCK:
            return self._read_entries()

    def drain(self) -> list[StoredMessage]:
        """Read and clear all pending entries.

        The file is removed before the entries are returned so a crash between
        drain and merge cannot deliver the same entries twice.
        """
        with _QUEUE_LOCK:
            if not self._path.exists():
                return []
            entries = self._read_entries()
            self._path.unlink(missing_ok=True)
        if entries:
            logger.info("Drained %d pending message(s)", len(entries))
        return entries
