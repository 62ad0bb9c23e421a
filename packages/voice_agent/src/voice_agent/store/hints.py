"""Learned UI-automation hints, one text blob per target surface.

Hints are free text condensed by the model after each run. They never contain
node identifiers and are overwritten on every run.
"""

from __future__ import annotations

from pathlib import Path

HINT_KEY_PREFIX = "ui_hint_"


class HintStore:
    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @staticmethod
    def key(target: str) -> str:
        """Build the storage key for a target (``com.whatsapp`` -> ``ui_hint_com_whatsapp``)."""
        return f"{HINT_KEY_PREFIX}{target.replace('.', '_')}"

    def _path(self, target: str) -> Path:
        return self._directory / f"{self.key(target)}.txt"

    def get_hints(self, target: str) -> str:
        path = self._path(target)
        if not path.exists():
            return ""
        return path.read_text(encoding="utf-8")

    def save_hints(self, target: str, hints: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        self._path(target).write_text(hints, encoding="utf-8")

    def clear_hints(self, target: str) -> None:
        self._path(target).unlink(missing_ok=True)
