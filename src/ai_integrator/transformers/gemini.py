"""Gemini (google-genai) tool translation.

Gemini format::

    {
        "tools": [{
            "function_declarations": [{
                "name": "get_weather",
                "description": "Get current weather",
                "parameters": {...},
            }]
        }]
    }

Gemini has no switch for disabling parallel function calls, so that flag is
not representable here; the adapter logs that it was ignored.
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


def to_gemini_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    """Convert tool definitions into a single function-declarations envelope."""
    return [
        {
            "function_declarations": [
                {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": copy_schema(tool.parameters),
                }
                for tool in tools
            ]
        }
    ]


def to_gemini_tool_config(choice: ToolChoice | None) -> dict[str, Any] | None:
    """Map tool_choice onto Gemini's function-calling modes.

    ``required`` maps to ``ANY``; a pin maps to ``ANY`` restricted to one
    allowed function name.
    """
    if choice is None:
        return None
    name = pinned_tool_name(choice)
    if name is not None:
        return {
            "function_calling_config": {
                "mode": "ANY",
                "allowed_function_names": [name],
            }
        }
    modes = {"auto": "AUTO", "none": "NONE", "required": "ANY"}
    mode = modes.get(choice) if isinstance(choice, str) else None
    if mode is None:
        return None
    return {"function_calling_config": {"mode": mode}}


def from_gemini_parts(parts: Any) -> list[ToolCall]:
    """Extract tool calls from Gemini content parts.

    Gemini rarely assigns call ids, so one is synthesized when missing.
    """
    calls: list[ToolCall] = []
    for part in parts or ():
        fc = get_field(part, "function_call")
        if fc is None:
            continue
        calls.append(
            ToolCall(
                id=get_field(fc, "id") or synthetic_call_id(),
                function=FunctionCall(
                    name=str(get_field(fc, "name") or ""),
                    arguments=json.dumps(dict(get_field(fc, "args") or {})),
                ),
            )
        )
    return calls
