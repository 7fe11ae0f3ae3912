"""ai-integrator: one chat interface over OpenAI, Anthropic and Gemini.

Public API:
    - AIClient: chat / chat_stream with retry, timeout and provider fallback
    - ClientConfig, FallbackConfig, ProviderConfig: configuration models
    - ChatRequest, ChatResponse, Message, StreamChunk, ...: unified types
    - AIIntegratorError, ErrorType: structured failures
"""

from __future__ import annotations


from ai_integrator.client import AIClient
from ai_integrator.config import ClientConfig, FallbackConfig, ProviderConfig
from ai_integrator.errors import AIIntegratorError, ConfigurationError, ErrorType
from ai_integrator.logging import DebugLogger, configure_logging
from ai_integrator.providers import Provider, create_provider
from ai_integrator.retry import RetryPolicy, retry_async, retry_with_timeout
from ai_integrator.types import (
    ChatRequest,
    ChatResponse,
    FunctionCall,
    FunctionCallDelta,
    FunctionDefinition,
    Message,
    StreamChunk,
    StreamDelta,
    ToolCall,
    ToolCallDelta,
    ToolDefinition,
    Usage,
    accumulate_tool_calls,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("ai-integrator")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"


__all__ = [
    "AIClient",
    "AIIntegratorError",
    "ChatRequest",
    "ChatResponse",
    "ClientConfig",
    "ConfigurationError",
    "DebugLogger",
    "ErrorType",
    "FallbackConfig",
    "FunctionCall",
    "FunctionCallDelta",
    "FunctionDefinition",
    "Message",
    "Provider",
    "ProviderConfig",
    "RetryPolicy",
    "StreamChunk",
    "StreamDelta",
    "ToolCall",
    "ToolCallDelta",
    "ToolDefinition",
    "Usage",
    "accumulate_tool_calls",
    "configure_logging",
    "create_provider",
    "retry_async",
    "retry_with_timeout",
]
