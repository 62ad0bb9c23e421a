"""Capability contract and result helpers.

for_model: what the model sees as the tool result (technical, full detail)
for_user:  optional short text narrated to the user immediately; never
           re-enters the conversation
is_error:  whether the execution failed
"""

from __future__ import annotations

import abc
import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from voice_agent.llm.types import JSONSchema, ToolDefinition

EMPTY_SCHEMA: JSONSchema = {"type": "object", "properties": {}}


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one capability execution."""

    for_model: str
    for_user: str | None = None
    is_error: bool = False


def success_result(for_model: str, for_user: str | None = None) -> ToolResult:
    """Convenience factory for success results."""
    return ToolResult(for_model=for_model, for_user=for_user or None, is_error=False)


def error_result(message: str) -> ToolResult:
    """Convenience factory for error results."""
    return ToolResult(for_model=f"Error: {message}", is_error=True)


def _normalize_items(items: Iterable[str] | str | None) -> tuple[str, ...]:
    if items is None:
        return ()
    if isinstance(items, str):
        stripped = items.strip()
        return (stripped,) if stripped else ()
    normalized: list[str] = []
    for item in items:
        value = str(item).strip()
        if value and value not in normalized:
            normalized.append(value)
    return tuple(normalized)


def validate_json_schema(schema: Mapping[str, Any], label: str) -> None:
    """Check the structural rules a parameter schema must follow."""
    if not isinstance(schema, Mapping):
        message = f"{label} must be a mapping"
        raise TypeError(message)
    schema_type = schema.get("type")
    properties = schema.get("properties")
    if properties is not None:
        if schema_type not in (None, "object"):
            message = f"{label}.properties requires type 'object'"
            raise ValueError(message)
        if not isinstance(properties, Mapping):
            message = f"{label}.properties must be a mapping when provided"
            raise ValueError(message)
    required = schema.get("required")
    if required is not None and not isinstance(required, list):
        message = f"{label}.required must be a list when provided"
        raise ValueError(message)
    if isinstance(required, list):
        if properties is None:
            message = f"{label}.required requires properties to be defined"
            raise ValueError(message)
        for key in required:
            if key not in properties:
                message = f"{label}.required contains unknown property '{key}'"
                raise ValueError(message)


class Tool(abc.ABC):
    """A schema-described capability the model can invoke.

    Subclasses set ``name``, ``description`` and ``parameters`` and implement
    :meth:`execute`. ``exclusive_feature`` marks a capability that only exists
    while the named feature is enabled. ``tags`` classify capabilities so a
    context can strip whole groups (for example ``scheduling``).

    Well-behaved tools catch their own failures and return :func:`error_result`.
    """

    name: str = ""
    description: str = ""
    parameters: JSONSchema = EMPTY_SCHEMA
    exclusive_feature: str | None = None
    tags: tuple[str, ...] = ()

    def definition(self) -> ToolDefinition:
        """Return the schema-bearing definition presented to the model."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=dict(self.parameters),
        )

    def validate(self) -> None:
        """Validate name, description and parameter schema."""
        if not self.name.strip():
            msg = "Tool.name must be non-empty"
            raise ValueError(msg)
        if not self.description.strip():
            msg = f"Tool '{self.name}' description must be non-empty"
            raise ValueError(msg)
        validate_json_schema(self.parameters, f"{self.name}.parameters")

    @abc.abstractmethod
    async def execute(self, args: dict[str, Any]) -> ToolResult:
        """Execute the capability with model-supplied arguments."""


ToolHandler = Callable[..., "ToolResult | str | Awaitable[ToolResult | str]"]


class FunctionTool(Tool):
    """Tool backed by a plain (sync or async) function.

    The handler receives the model arguments as keyword arguments. Returning
    a string is shorthand for a success result.
    """

    def __init__(
        self,
        handler: ToolHandler,
        *,
        name: str,
        description: str,
        parameters: JSONSchema | None = None,
        exclusive_feature: str | None = None,
        tags: Iterable[str] | str | None = None,
    ) -> None:
        self._handler = handler
        self.name = name
        self.description = description
        self.parameters = parameters if parameters is not None else dict(EMPTY_SCHEMA)
        self.exclusive_feature = exclusive_feature
        self.tags = _normalize_items(tags)
        self.validate()

    @property
    def handler(self) -> ToolHandler:
        return self._handler

    async def execute(self, args: dict[str, Any]) -> ToolResult:
        result = self._handler(**args)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, ToolResult):
            return result
        return success_result(str(result))


def function_tool(
    *,
    name: str | None = None,
    description: str | None = None,
    parameters: JSONSchema | None = None,
    exclusive_feature: str | None = None,
    tags: Iterable[str] | str | None = None,
) -> Callable[[ToolHandler], FunctionTool]:
    """Decorator that turns a function into a :class:`FunctionTool`."""

    def decorator(func: ToolHandler) -> FunctionTool:
        tool_name = name or getattr(func, "__name__", "").strip()
        tool_description = description or (getattr(func, "__doc__", "") or "").strip()
        if not tool_description:
            msg = "Tool description must be provided or via docstring"
            raise ValueError(msg)
        return FunctionTool(
            func,
            name=tool_name,
            description=tool_description,
            parameters=parameters,
            exclusive_feature=exclusive_feature,
            tags=tags,
        )

    return decorator
