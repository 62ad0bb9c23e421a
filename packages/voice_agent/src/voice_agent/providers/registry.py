"""Model provider registry.

Maps the provider selected in the persisted agent config to a Strands model
and wraps it in the chat adapter consumed by the loop engine.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from voice_agent.errors import ConfigError
from voice_agent.llm.strands_model import StrandsChatModel

if TYPE_CHECKING:
    from strands.models.model import Model

    from voice_agent.config.agent_config import AgentConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1024

ModelBuilder = Callable[["AgentConfig"], "Model"]


def _create_anthropic_model(config: AgentConfig) -> Model:
    """Create an Anthropic model instance."""
    from strands.models.anthropic import AnthropicModel  # noqa: PLC0415

    return AnthropicModel(
        client_args={"api_key": config.require_api_key()},
        model_id=config.resolved_model,
        max_tokens=DEFAULT_MAX_TOKENS,
    )


def _create_openai_model(config: AgentConfig) -> Model:
    """Create an OpenAI model instance."""
    from strands.models.openai import OpenAIModel  # noqa: PLC0415

    return OpenAIModel(
        client_args={"api_key": config.require_api_key()},
        model_id=config.resolved_model,
    )


def _create_ollama_model(config: AgentConfig) -> Model:
    """Create an Ollama model instance."""
    if not config.ollama_host:
        msg = "Ollama provider requires ollamaHost (example: http://localhost:11434)."
        raise ConfigError(msg)

    from strands.models.ollama import OllamaModel  # noqa: PLC0415

    return OllamaModel(host=config.ollama_host, model_id=config.resolved_model)


class ModelProviderRegistry:
    """Registry of model builders keyed by provider name."""

    def __init__(self) -> None:
        self._builders: dict[str, ModelBuilder] = {}

    def register_provider(self, name: str, builder: ModelBuilder) -> None:
        """Register (or replace) the builder for a provider."""
        self._builders[name] = builder
        logger.debug("Registered provider: %s", name)

    def list_providers(self) -> list[str]:
        """List all registered provider names."""
        return sorted(self._builders)

    def create_chat_model(self, config: AgentConfig) -> StrandsChatModel:
        """Create the chat model described by an agent config.

        Raises:
            ConfigError: If the provider is unknown or misconfigured.
        """
        builder = self._builders.get(config.provider)
        if builder is None:
            msg = (
                f"Unsupported provider '{config.provider}'. "
                f"Supported providers: {self.list_providers()}"
            )
            raise ConfigError(msg)
        model = builder(config)
        logger.info("Provider: %s (%s)", config.provider, config.resolved_model)
        return StrandsChatModel(model, config.resolved_model)


_default_registry: ModelProviderRegistry | None = None


def get_default_registry() -> ModelProviderRegistry:
    """Get or create the default model provider registry."""
    global _default_registry  # noqa: PLW0603
    if _default_registry is None:
        registry = ModelProviderRegistry()
        registry.register_provider("claude", _create_anthropic_model)
        registry.register_provider("openai", _create_openai_model)
        registry.register_provider("ollama", _create_ollama_model)
        _default_registry = registry
    return _default_registry


def create_chat_model(config: AgentConfig) -> StrandsChatModel:
    """Create a chat model using the default provider registry."""
    return get_default_registry().create_chat_model(config)
