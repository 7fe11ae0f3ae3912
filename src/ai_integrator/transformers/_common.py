"""Helpers shared by the tool transformers."""

from __future__ import annotations

from copy import deepcopy
from typing import TYPE_CHECKING, Any
import uuid

if TYPE_CHECKING:
    from ai_integrator.types import ToolChoice


def get_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read *key* from a dict or an attribute from an SDK object."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def pinned_tool_name(choice: ToolChoice | None) -> str | None:
    """Return the function name of a pin-to-tool choice, else None.

    Accepts ``{"name": ...}`` and the OpenAI shape
    ``{"type": "function", "function": {"name": ...}}``.
    """
    if not isinstance(choice, dict):
        return None
    name = choice.get("name")
    if isinstance(name, str) and name:
        return name
    fn = choice.get("function")
    if isinstance(fn, dict):
        name = fn.get("name")
        if isinstance(name, str) and name:
            return name
    return None


def copy_schema(parameters: dict[str, Any] | None) -> dict[str, Any]:
    """Deep-copy a parameter schema so callers' definitions stay untouched."""
    if parameters is None:
        return {"type": "object", "properties": {}}
    return deepcopy(parameters)


def synthetic_call_id() -> str:
    """Tool-call id for vendors that do not assign one (unique per response)."""
    return f"call_{uuid.uuid4().hex[:12]}"
