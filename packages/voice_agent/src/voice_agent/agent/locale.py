"""Response-language resolution."""

from __future__ import annotations

import locale
import logging

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en-US"
SYSTEM_LANGUAGE = "system"

_LANGUAGE_NAMES = (
    ("de", "German (Deutsch)"),
    ("en", "English"),
    ("fr", "French (Français)"),
    ("es", "Spanish (Español)"),
    ("it", "Italian (Italiano)"),
)


def _system_locale() -> str | None:
    try:
        tag, _encoding = locale.getlocale()
    except ValueError:
        logger.debug("Could not read process locale", exc_info=True)
        return None
    if not tag or tag in ("C", "POSIX"):
        return None
    return tag.replace("_", "-")


def resolve_language(setting: str | None) -> str:
    """Turn the configured language into a concrete BCP-47 tag.

    ``system`` (or an empty setting) maps to the process locale, falling back
    to ``en-US`` when the locale cannot be determined.
    """
    value = (setting or "").strip()
    if value and value.lower() != SYSTEM_LANGUAGE:
        return value
    return _system_locale() or DEFAULT_LANGUAGE


def language_name(tag: str | None) -> str:
    """Map a BCP-47 tag to a human-readable language name.

    Unknown tags are passed through so the model can still try.
    """
    resolved = resolve_language(tag)
    lowered = resolved.lower()
    for prefix, name in _LANGUAGE_NAMES:
        if lowered.startswith(prefix):
            return name
    return resolved
