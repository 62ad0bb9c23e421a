"""Model-call contract, conversation types and the Strands adapter."""

from voice_agent.llm.codec import convert_to_strands_messages, convert_tool_specs
from voice_agent.llm.strands_model import StrandsChatModel, StreamAccumulator
from voice_agent.llm.types import (
    ChatModel,
    ChatOptions,
    ChatResponse,
    Message,
    ToolCall,
    ToolDefinition,
    Usage,
)

__all__ = [
    "ChatModel",
    "ChatOptions",
    "ChatResponse",
    "Message",
    "StrandsChatModel",
    "StreamAccumulator",
    "ToolCall",
    "ToolDefinition",
    "Usage",
    "convert_to_strands_messages",
    "convert_tool_specs",
]
