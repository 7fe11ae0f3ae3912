"""Per-provider tool translation (pure functions, no SDK imports)."""

from .anthropic import from_anthropic_content, to_anthropic_tool_choice, to_anthropic_tools
from .gemini import from_gemini_parts, to_gemini_tool_config, to_gemini_tools
from .openai import (
    from_openai_tool_call_deltas,
    from_openai_tool_calls,
    to_openai_tool_choice,
    to_openai_tools,
)

__all__ = [
    "from_anthropic_content",
    "from_gemini_parts",
    "from_openai_tool_call_deltas",
    "from_openai_tool_calls",
    "to_anthropic_tool_choice",
    "to_anthropic_tools",
    "to_gemini_tool_config",
    "to_gemini_tools",
    "to_openai_tool_choice",
    "to_openai_tools",
]
