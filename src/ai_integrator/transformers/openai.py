"""OpenAI Chat Completions tool translation.

The unified shapes are close to OpenAI's own, so this is mostly a matter of
wrapping definitions in the ``{"type": "function", "function": ...}``
envelope and reading SDK objects back into ``ToolCall`` values.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ai_integrator.transformers._common import (
    copy_schema,
    get_field,
    pinned_tool_name,
    synthetic_call_id,
)
from ai_integrator.types import FunctionCall, FunctionCallDelta, ToolCall, ToolCallDelta

if TYPE_CHECKING:
    from ai_integrator.types import ToolChoice, ToolDefinition


def to_openai_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    """Wrap tool definitions in OpenAI's function envelope."""
    out: list[dict[str, Any]] = []
    for tool in tools:
        fn: dict[str, Any] = {
            "name": tool.name,
            "parameters": copy_schema(tool.parameters),
        }
        if tool.description:
            fn["description"] = tool.description
        out.append({"type": "function", "function": fn})
    return out


def to_openai_tool_choice(choice: ToolChoice | None) -> str | dict[str, Any] | None:
    """OpenAI supports all four choices natively."""
    if choice is None:
        return None
    name = pinned_tool_name(choice)
    if name is not None:
        return {"type": "function", "function": {"name": name}}
    return choice


def from_openai_tool_calls(raw_calls: Any) -> list[ToolCall]:
    """Convert ``message.tool_calls`` (SDK objects or dicts) into ``ToolCall``."""
    calls: list[ToolCall] = []
    for raw in raw_calls or ():
        fn = get_field(raw, "function")
        calls.append(
            ToolCall(
                id=get_field(raw, "id") or synthetic_call_id(),
                function=FunctionCall(
                    name=get_field(fn, "name") or "",
                    arguments=get_field(fn, "arguments") or "{}",
                ),
            )
        )
    return calls


def from_openai_tool_call_deltas(raw_deltas: Any) -> list[ToolCallDelta]:
    """Convert streamed ``delta.tool_calls`` fragments, keeping their indices."""
    deltas: list[ToolCallDelta] = []
    for raw in raw_deltas or ():
        fn = get_field(raw, "function")
        deltas.append(
            ToolCallDelta(
                index=int(get_field(raw, "index", 0) or 0),
                id=get_field(raw, "id"),
                type="function" if get_field(raw, "type") == "function" else None,
                function=(
                    FunctionCallDelta(
                        name=get_field(fn, "name"),
                        arguments=get_field(fn, "arguments"),
                    )
                    if fn is not None
                    else None
                ),
            )
        )
    return deltas
