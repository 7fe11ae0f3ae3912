"""Shared utilities for provider implementations."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
import uuid

from ai_integrator.config import api_key_env_var
from ai_integrator.errors import AIIntegratorError, ConfigurationError, ErrorType
from ai_integrator.transformers._common import pinned_tool_name
from ai_integrator.types import ToolDefinition

if TYPE_CHECKING:
    from ai_integrator.config import ProviderConfig
    from ai_integrator.logging import DebugLogger
    from ai_integrator.types import ChatRequest, Message, ToolChoice

_MIN_TEMPERATURE = 0.0
_MAX_TEMPERATURE = 2.0


def require_api_key(config: ProviderConfig, provider: str) -> str:
    """Return the configured API key or raise ConfigurationError."""
    key = config.api_key_value
    if not key:
        env_var = api_key_env_var(provider)
        hint = (
            f"Set {env_var} environment variable or pass api_key=..."
            if env_var
            else "Pass api_key=..."
        )
        raise ConfigurationError(
            f"API key required for {provider}", provider=provider, hint=hint
        )
    return key


def _invalid(message: str, provider: str) -> AIIntegratorError:
    return AIIntegratorError(
        ErrorType.INVALID_REQUEST, message, provider=provider, retryable=False
    )


def validate_request(
    request: ChatRequest, *, provider: str, logger: DebugLogger | None = None
) -> None:
    """Reject malformed requests before any network interaction.

    Also emits one-time deprecation warnings for the legacy function-calling
    fields.
    """
    if not request.messages:
        raise _invalid("Messages array cannot be empty", provider)
    if request.temperature is not None and not (
        _MIN_TEMPERATURE <= request.temperature <= _MAX_TEMPERATURE
    ):
        raise _invalid("Temperature must be between 0 and 2", provider)
    if request.max_tokens is not None and request.max_tokens < 1:
        raise _invalid("max_tokens must be greater than 0", provider)

    if logger is None:
        return
    if request.functions:
        logger.warn_once(
            "functions",
            "DEPRECATION WARNING: the 'functions' parameter is deprecated; "
            "use 'tools' instead.",
        )
    if request.function_call is not None:
        logger.warn_once(
            "function_call",
            "DEPRECATION WARNING: the 'function_call' parameter is deprecated; "
            "use 'tool_choice' instead.",
        )


def resolve_model(request: ChatRequest, config: ProviderConfig, default: str) -> str:
    """Request model, then configured default, then the adapter default."""
    return request.model or config.default_model or default


def effective_tools(request: ChatRequest) -> list[ToolDefinition] | None:
    """Modern tools, or legacy functions upgraded to tools when tools are absent."""
    if request.tools:
        return list(request.tools)
    if request.functions:
        return [
            ToolDefinition(
                name=f.name, parameters=f.parameters, description=f.description
            )
            for f in request.functions
        ]
    return None


def effective_tool_choice(request: ChatRequest) -> ToolChoice | None:
    """Modern tool_choice, or the legacy function_call upgraded when absent."""
    if request.tool_choice is not None:
        return request.tool_choice
    if request.tools:
        return None
    legacy = request.function_call
    if isinstance(legacy, dict) and "name" in legacy:
        return {"name": legacy["name"]}
    return legacy


def check_tool_choice(choice: ToolChoice | None, provider: str) -> None:
    """Reject tool choices outside auto/none/required/pin."""
    if choice is None or choice in ("auto", "none", "required"):
        return
    if pinned_tool_name(choice) is None:
        raise _invalid(f"Unsupported tool_choice: {choice!r}", provider)


def split_system(messages: list[Message]) -> tuple[str | None, list[Message]]:
    """Separate system messages (joined by blank lines) from the rest."""
    system_parts = [m.content for m in messages if m.role == "system" and m.content]
    others = [m for m in messages if m.role != "system"]
    return ("\n\n".join(system_parts) if system_parts else None), others


def tool_names_by_call_id(messages: list[Message]) -> dict[str, str]:
    """Lookup table of tool-call id to function name from assistant turns."""
    table: dict[str, str] = {}
    for m in messages:
        for tc in m.tool_calls or ():
            table[tc.id] = tc.name
    return table


def stop_sequences(stop: str | list[str] | None) -> list[str] | None:
    if stop is None:
        return None
    if isinstance(stop, str):
        return [stop]
    return list(stop) or None


def parse_arguments(arguments: str | None) -> dict[str, Any]:
    """Decode a tool-call arguments string into a dict for vendors that need one."""
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def append_merged(entries: list[dict[str, Any]], entry: dict[str, Any], *, key: str) -> None:
    """Append *entry*, merging into the previous one when roles match.

    Anthropic and Gemini require user/model turns to alternate. When
    consecutive entries share a role (e.g. several tool results) their
    ``key`` lists are concatenated. String content is normalized to a text
    block first.
    """
    if entries and entries[-1]["role"] == entry["role"]:
        prev = entries[-1]
        prev_content = prev[key]
        new_content = entry[key]
        if isinstance(prev_content, str):
            prev_content = [{"type": "text", "text": prev_content}]
        if isinstance(new_content, str):
            new_content = [{"type": "text", "text": new_content}]
        prev[key] = prev_content + new_content
    else:
        entries.append(entry)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
