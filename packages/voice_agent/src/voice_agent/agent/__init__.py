from voice_agent.agent.locale import DEFAULT_LANGUAGE, language_name, resolve_language
from voice_agent.agent.loop import LoopResult, ToolLoopConfig, run_tool_loop
from voice_agent.agent.metrics import LoopMetrics
from voice_agent.agent.prompts import (
    build_system_prompt,
    formulate_response,
    generate_announcement,
    output_style,
)

__all__ = [
    "DEFAULT_LANGUAGE",
    "LoopMetrics",
    "LoopResult",
    "ToolLoopConfig",
    "build_system_prompt",
    "formulate_response",
    "generate_announcement",
    "language_name",
    "output_style",
    "resolve_language",
    "run_tool_loop",
]
