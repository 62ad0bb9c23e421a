from voice_agent.config.agent_config import (
    DEFAULT_MODELS,
    AgentConfig,
    AgentConfigStore,
    IterationLimits,
    ProviderName,
)
from voice_agent.config.settings import Settings, load_settings

__all__ = [
    "DEFAULT_MODELS",
    "AgentConfig",
    "AgentConfigStore",
    "IterationLimits",
    "ProviderName",
    "Settings",
    "load_settings",
]
