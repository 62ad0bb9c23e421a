"""Persisted agent configuration shared by foreground and headless contexts.

The foreground session writes a single JSON blob after every settings change.
Every headless run reads it before building its registry and prompt; it is the
only channel through which foreground settings reach background runs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from voice_agent.errors import ConfigError
from voice_agent.store.files import read_json, write_json_atomic

logger = logging.getLogger(__name__)

ProviderName = Literal["claude", "openai", "ollama"]

DEFAULT_MODELS: dict[str, str] = {
    "claude": "claude-sonnet-4-6",
    "openai": "gpt-5.2",
    "ollama": "llama3.1",
}


class IterationLimits(BaseModel, frozen=True):
    """Per-context iteration ceilings for the loop engine."""

    interactive: int = Field(default=10, gt=0)
    ui_automation: int = Field(default=12, gt=0, alias="uiAutomation")
    notification: int = Field(default=8, gt=0)

    model_config = {"populate_by_name": True}


class AgentConfig(BaseModel, frozen=True):
    """Agent settings persisted as one JSON document."""

    api_key: str = Field(default="", alias="apiKey")
    provider: ProviderName = "claude"
    model: str | None = None
    enabled_features: list[str] = Field(default_factory=list, alias="enabledFeatures")
    language: str = "system"
    driving_mode: bool = Field(default=False, alias="drivingMode")
    iteration_limits: IterationLimits = Field(
        default_factory=IterationLimits, alias="iterationLimits"
    )
    ollama_host: str | None = Field(default=None, alias="ollamaHost")

    model_config = {"populate_by_name": True}

    @property
    def resolved_model(self) -> str:
        """Return the configured model or the provider default."""
        return self.model or DEFAULT_MODELS[self.provider]

    def require_api_key(self) -> str:
        """Return the API key, raising when a hosted provider has none."""
        if self.provider != "ollama" and not self.api_key:
            msg = "No API key configured"
            raise ConfigError(msg)
        return self.api_key


class AgentConfigStore:
    """Read and write the persisted agent configuration file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, config: AgentConfig) -> None:
        """Persist the configuration atomically."""
        write_json_atomic(self._path, config.model_dump(by_alias=True))
        logger.debug("Saved agent config to %s", self._path)

    def load(self) -> AgentConfig | None:
        """Load the configuration, or None when nothing was saved yet.

        Raises:
            ConfigError: If the file exists but cannot be parsed.
        """
        try:
            raw = read_json(self._path)
            if raw is None:
                return None
            return AgentConfig.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            msg = f"Agent config at {self._path} is unreadable: {exc}"
            raise ConfigError(msg) from exc

    def load_required(self) -> AgentConfig:
        """Load the configuration, raising when it is missing."""
        config = self.load()
        if config is None:
            msg = "No agent config found"
            raise ConfigError(msg)
        return config
