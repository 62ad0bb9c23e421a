"""Message conversion helpers for the Strands model layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from voice_agent.llm.types import Message, ToolDefinition


def convert_to_strands_messages(
    messages: list[Message],
) -> tuple[list[dict[str, Any]], str | None]:
    """Convert conversation messages to Strands SDK message format.

    System messages are collected into a single system prompt. Tool results
    become ``toolResult`` blocks on a user message, and consecutive messages
    with the same Strands role are merged so providers always see strictly
    alternating turns.

    Returns:
        Tuple of (strands messages, system prompt or None).
    """
    strands_messages: list[dict[str, Any]] = []
    system_parts: list[str] = []

    for msg in messages:
        if msg.role == "system":
            if msg.content:
                system_parts.append(msg.content)
            continue

        if msg.role == "tool":
            role = "user"
            blocks = [_convert_tool_result(msg)]
        elif msg.role == "assistant":
            role = "assistant"
            blocks = _convert_assistant(msg)
        else:
            role = "user"
            blocks = [{"text": msg.content}] if msg.content else []

        if not blocks:
            continue
        if strands_messages and strands_messages[-1]["role"] == role:
            strands_messages[-1]["content"].extend(blocks)
        else:
            strands_messages.append({"role": role, "content": blocks})

    system_prompt = "\n\n".join(system_parts) if system_parts else None
    return strands_messages, system_prompt


def convert_tool_specs(definitions: list[ToolDefinition]) -> list[dict[str, Any]]:
    """Convert tool definitions to Strands tool specs."""
    return [definition.to_spec() for definition in definitions]


def _convert_assistant(msg: Message) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    if msg.content:
        blocks.append({"text": msg.content})
    for call in msg.tool_calls:
        blocks.append(
            {
                "toolUse": {
                    "toolUseId": call.id,
                    "name": call.name,
                    "input": dict(call.arguments),
                }
            }
        )
    return blocks


def _convert_tool_result(msg: Message) -> dict[str, Any]:
    status = "error" if msg.is_error else "success"
    return {
        "toolResult": {
            "toolUseId": msg.tool_call_id or "",
            "content": [{"text": msg.content}] if msg.content else [],
            "status": status,
        }
    }
