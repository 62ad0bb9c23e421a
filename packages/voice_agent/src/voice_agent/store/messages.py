"""Stored conversation entries.

Only clean user/assistant text is persisted. Tool calls and tool results never
leave the in-memory pipeline history.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Literal

from voice_agent.utils import utc_timestamp

logger = logging.getLogger(__name__)

StoredRole = Literal["user", "assistant"]


@dataclass(frozen=True)
class StoredMessage:
    """One persisted user or assistant entry."""

    role: StoredRole
    text: str
    timestamp: str

    @classmethod
    def now(cls, role: StoredRole, text: str) -> StoredMessage:
        return cls(role=role, text=text, timestamp=utc_timestamp())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_entries(raw: Any) -> list[StoredMessage]:
    """Keep only well-formed entries from a decoded JSON document."""
    if not isinstance(raw, list):
        return []
    entries: list[StoredMessage] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        text = item.get("text")
        if role not in ("user", "assistant") or not isinstance(text, str):
            logger.debug("Dropping malformed stored message: %r", item)
            continue
        timestamp = str(item.get("timestamp", ""))
        entries.append(StoredMessage(role=role, text=text, timestamp=timestamp))
    return entries
