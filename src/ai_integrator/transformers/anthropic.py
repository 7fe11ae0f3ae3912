"""Anthropic Messages API tool translation.

Anthropic format::

    {
        "name": "get_weather",
        "description": "Get current weather",
        "input_schema": {
            "type": "object",
            "properties": {"location": {"type": "string"}},
            "required": ["location"],
        },
    }
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from ai_integrator.transformers._common import (
    copy_schema,
    get_field,
    pinned_tool_name,
    synthetic_call_id,
)
from ai_integrator.types import FunctionCall, ToolCall

if TYPE_CHECKING:
    from ai_integrator.types import ToolChoice, ToolDefinition


def to_anthropic_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    """Convert tool definitions to Anthropic format (parameters → input_schema)."""
    return [
        {
            "name": tool.name,
            "description": tool.description or "",
            "input_schema": copy_schema(tool.parameters),
        }
        for tool in tools
    ]


def to_anthropic_tool_choice(
    choice: ToolChoice | None,
    parallel_tool_calls: bool | None = None,
) -> dict[str, Any] | None:
    """Map tool_choice to Anthropic format.

    ``required`` becomes ``{"type": "any"}`` (force some tool) and a pin
    becomes ``{"type": "tool"}``. ``parallel_tool_calls=False`` is expressed
    as ``disable_parallel_tool_use``, which Anthropic only accepts alongside a
    tool choice, so an implicit ``auto`` is sent in that case. Returns None
    when nothing needs to be sent.
    """
    mapped: dict[str, Any] | None
    name = pinned_tool_name(choice)
    if name is not None:
        mapped = {"type": "tool", "name": name}
    elif choice == "required":
        mapped = {"type": "any"}
    elif choice == "none":
        mapped = {"type": "none"}
    elif choice == "auto":
        mapped = {"type": "auto"}
    else:
        mapped = None

    if parallel_tool_calls is False:
        if mapped is None:
            mapped = {"type": "auto"}
        if mapped["type"] != "none":
            mapped["disable_parallel_tool_use"] = True
    return mapped


def from_anthropic_content(blocks: Any) -> list[ToolCall]:
    """Extract tool calls from Anthropic response content blocks."""
    calls: list[ToolCall] = []
    for block in blocks or ():
        if get_field(block, "type") != "tool_use":
            continue
        calls.append(
            ToolCall(
                id=get_field(block, "id") or synthetic_call_id(),
                function=FunctionCall(
                    name=get_field(block, "name") or "",
                    arguments=json.dumps(get_field(block, "input") or {}),
                ),
            )
        )
    return calls
