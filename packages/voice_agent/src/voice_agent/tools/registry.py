"""Registry of capabilities available to a loop run.

A registry instance is read-only while a loop runs against it. Capabilities
are added or removed between runs, when the active feature set changes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from voice_agent.tools.base import error_result

if TYPE_CHECKING:
    from collections.abc import Iterable

    from voice_agent.llm.types import ToolDefinition
    from voice_agent.tools.base import Tool, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Register, list and execute tools."""

    def __init__(self, tools: Iterable[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        self._summaries_cache: list[str] | None = None
        for tool in tools or ():
            self.register(tool)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: Tool) -> None:
        """Register a tool. Overwrites an existing tool with the same name."""
        tool.validate()
        if tool.name in self._tools:
            logger.debug("Replacing registered tool: %s", tool.name)
        self._tools[tool.name] = tool
        self._summaries_cache = None

    def copy(self) -> ToolRegistry:
        """Return an independent registry holding the same tool instances."""
        return ToolRegistry(self._tools.values())

    def unregister(self, name: str) -> None:
        """Remove a tool by name. No-op if the tool is not registered."""
        if self._tools.pop(name, None) is not None:
            self._summaries_cache = None

    def remove_disabled(self, active_features: Iterable[str]) -> list[str]:
        """Drop tools that belong exclusively to a feature not in ``active_features``.

        Call this after registering all tools and before using the registry.

        Returns:
            Names of the removed tools.
        """
        active = set(active_features)
        removed = [
            name
            for name, tool in self._tools.items()
            if tool.exclusive_feature is not None and tool.exclusive_feature not in active
        ]
        for name in removed:
            del self._tools[name]
        if removed:
            self._summaries_cache = None
            logger.debug("Removed tools of disabled features: %s", ", ".join(removed))
        return removed

    def remove_tagged(self, tags: Iterable[str]) -> list[str]:
        """Drop every tool carrying any of ``tags``."""
        blocked = set(tags)
        removed = [name for name, tool in self._tools.items() if blocked.intersection(tool.tags)]
        for name in removed:
            del self._tools[name]
        if removed:
            self._summaries_cache = None
        return removed

    def get(self, name: str) -> Tool | None:
        """Get a registered tool by name."""
        return self._tools.get(name)

    def list(self) -> list[str]:
        """List registered tool names in registration order."""
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        """Build the definition array sent with every model call."""
        return [tool.definition() for tool in self._tools.values()]

    async def execute(self, name: str, args: dict[str, Any]) -> ToolResult:
        """Execute a tool by name.

        Never raises: unknown tools, missing required arguments and failures
        inside the tool are all converted into error results so a single
        misbehaving capability cannot crash the loop.
        """
        tool = self._tools.get(name)
        if tool is None:
            return error_result(f"Unknown tool: {name}")

        missing = [key for key in tool.parameters.get("required", []) if key not in args]
        if missing:
            return error_result(f"Missing required argument(s): {', '.join(missing)}")

        try:
            return await tool.execute(args)
        except Exception as exc:
            logger.exception("Tool '%s' raised", name)
            return error_result(f"Tool execution failed: {exc}")

    def summaries(self) -> list[str]:
        """Return brief, alphabetically sorted summaries for the system prompt."""
        if self._summaries_cache is None:
            self._summaries_cache = [
                f"- **{tool.name}**: {tool.description}"
                for tool in sorted(self._tools.values(), key=lambda item: item.name)
            ]
        return list(self._summaries_cache)
