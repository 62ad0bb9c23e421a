"""Model provider registry and adapters.

This module maps the provider selected in the agent config (Claude, OpenAI,
Ollama) to a Strands model wrapped in the loop engine's chat contract.
"""

from voice_agent.providers.registry import (
    ModelProviderRegistry,
    create_chat_model,
    get_default_registry,
)

__all__ = [
    "ModelProviderRegistry",
    "create_chat_model",
    "get_default_registry",
]
