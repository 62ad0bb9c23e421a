"""Voice assistant agent core: tool loop, interactive session and headless sub-agents."""

from voice_agent.agent import LoopResult, ToolLoopConfig, run_tool_loop
from voice_agent.config import AgentConfig, AgentConfigStore, Settings, load_settings
from voice_agent.errors import (
    CaptureError,
    ConfigError,
    ModelCallError,
    UIDriverError,
    VoiceAgentError,
)
from voice_agent.llm import ChatModel, ChatResponse, Message, ToolCall, ToolDefinition
from voice_agent.session import ConversationPipeline, SessionController, SessionState
from voice_agent.tools import Tool, ToolRegistry, ToolResult, error_result, success_result

__all__ = [
    "AgentConfig",
    "AgentConfigStore",
    "CaptureError",
    "ChatModel",
    "ChatResponse",
    "ConfigError",
    "ConversationPipeline",
    "LoopResult",
    "Message",
    "ModelCallError",
    "SessionController",
    "SessionState",
    "Settings",
    "Tool",
    "ToolCall",
    "ToolDefinition",
    "ToolLoopConfig",
    "ToolRegistry",
    "ToolResult",
    "UIDriverError",
    "VoiceAgentError",
    "error_result",
    "load_settings",
    "run_tool_loop",
    "success_result",
]
