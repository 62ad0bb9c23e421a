from voice_agent.tools.base import (
    FunctionTool,
    Tool,
    ToolResult,
    error_result,
    function_tool,
    success_result,
    validate_json_schema,
)
from voice_agent.tools.registry import ToolRegistry

__all__ = [
    "FunctionTool",
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "error_result",
    "function_tool",
    "success_result",
    "validate_json_schema",
]
