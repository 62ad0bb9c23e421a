"""Pydantic models for application settings."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel, frozen=True):
    """Runtime configuration loaded from environment variables."""

    data_dir: str = ".data"
    log_level: str = "INFO"
    # Echo avoidance between narration end and the next capture
    settle_delay_seconds: float = 0.6
    # UI settle time before every accessibility tree refresh
    tree_settle_delay_seconds: float = 0.8
    app_render_delay_seconds: float = 2.5
    app_wait_timeout_seconds: float = 10.0
    max_history_messages: int = 20
    max_stored_history: int = 50
    max_pending_messages: int = 10

    @property
    def data_path(self) -> Path:
        """Return the data directory as a path."""
        return Path(self.data_dir)

    @property
    def agent_config_path(self) -> Path:
        return self.data_path / "agent_config.json"

    @property
    def pending_path(self) -> Path:
        return self.data_path / "background_pending.json"

    @property
    def history_path(self) -> Path:
        return self.data_path / "conversation_history.json"

    @property
    def rules_path(self) -> Path:
        return self.data_path / "notification_rules.json"

    @property
    def hints_dir(self) -> Path:
        return self.data_path / "ui_hints"


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        msg = f"{name} must be a number, got {raw!r}"
        raise ValueError(msg) from None


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ValueError(msg)
    return value


def load_settings() -> Settings:
    """Load settings from environment variables with defaults."""
    load_dotenv()

    return Settings(
        data_dir=os.getenv("VOICE_AGENT_DATA_DIR", ".data"),
        log_level=os.getenv("VOICE_AGENT_LOG_LEVEL", "INFO"),
        settle_delay_seconds=_env_float("SETTLE_DELAY_SECONDS", "0.6"),
        tree_settle_delay_seconds=_env_float("TREE_SETTLE_DELAY_SECONDS", "0.8"),
        app_render_delay_seconds=_env_float("APP_RENDER_DELAY_SECONDS", "2.5"),
        app_wait_timeout_seconds=_env_float("APP_WAIT_TIMEOUT_SECONDS", "10"),
        max_history_messages=_env_int("MAX_HISTORY_MESSAGES", "20"),
        max_stored_history=_env_int("MAX_STORED_HISTORY", "50"),
        max_pending_messages=_env_int("MAX_PENDING_MESSAGES", "10"),
    )
