"""Shared utilities for the voice agent."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from uuid import uuid4

_MARKDOWN_CHARS = re.compile(r"[*_`#]")


def utc_timestamp() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


def new_run_id(prefix: str = "run") -> str:
    """Return a short unique identifier for a loop or sub-agent run."""
    return f"{prefix}-{uuid4().hex[:8]}"


def strip_markdown(text: str) -> str:
    """Remove markdown emphasis characters so narrated text sounds natural."""
    return _MARKDOWN_CHARS.sub("", text).strip()


def truncate(text: str, limit: int = 500) -> str:
    """Shorten text for log output."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}\n...(truncated)"
