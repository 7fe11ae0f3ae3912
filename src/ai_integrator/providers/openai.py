"""OpenAI Chat Completions provider."""

from __future__ import annotations

import asyncio
import importlib
from typing import TYPE_CHECKING, Any

from ai_integrator._singleflight import SingleFlightCell
from ai_integrator.logging import DebugLogger
from ai_integrator.providers._errors import classify_error, sdk_init_error, sdk_missing_error
from ai_integrator.providers._utils import (
    check_tool_choice,
    effective_tool_choice,
    effective_tools,
    new_id,
    require_api_key,
    resolve_model,
    validate_request,
)
from ai_integrator.transformers import (
    from_openai_tool_call_deltas,
    from_openai_tool_calls,
    to_openai_tool_choice,
    to_openai_tools,
)
from ai_integrator.types import (
    ChatResponse,
    Message,
    StreamChunk,
    StreamDelta,
    Usage,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ai_integrator.config import ProviderConfig
    from ai_integrator.types import ChatRequest, FinishReason

_FINISH_REASONS: frozenset[str] = frozenset(
    {"stop", "length", "tool_calls", "content_filter", "function_call"}
)


class OpenAIProvider:
    """OpenAI Chat Completions provider."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        logger: DebugLogger | None = None,
        client: Any = None,
    ) -> None:
        """Initialize from config; the SDK client is created on first use."""
        self.config = config
        self._api_key = require_api_key(config, self.name)
        self._logger = logger or DebugLogger(config.debug)
        self._client: SingleFlightCell[Any] = SingleFlightCell()
        if client is not None:
            self._client.set(client)

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def _get_client(self) -> Any:
        return await self._client.get(self._create_client)

    async def _create_client(self) -> Any:
        """Import the SDK off the event loop and build the async client."""
        try:
            module = await asyncio.to_thread(importlib.import_module, "openai")
        except ImportError as e:
            raise sdk_missing_error(self.name, "openai", e) from e
        kwargs: dict[str, Any] = {"api_key": self._api_key}
        if self.config.base_url:
            kwargs["base_url"] = self.config.base_url
        if self.config.organization:
            kwargs["organization"] = self.config.organization
        try:
            client = module.AsyncOpenAI(**kwargs)
        except Exception as e:
            raise sdk_init_error(self.name, e) from e
        self._logger.debug("OpenAI client initialized")
        return client

    def _build_kwargs(self, request: ChatRequest) -> dict[str, Any]:
        model = resolve_model(request, self.config, self.DEFAULT_MODEL)
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [_to_openai_message(m) for m in request.messages],
        }
        optional = {
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "top_p": request.top_p,
            "frequency_penalty": request.frequency_penalty,
            "presence_penalty": request.presence_penalty,
            "stop": request.stop,
        }
        kwargs.update({k: v for k, v in optional.items() if v is not None})

        tools = effective_tools(request)
        if tools:
            kwargs["tools"] = to_openai_tools(tools)
            if request.parallel_tool_calls is not None:
                kwargs["parallel_tool_calls"] = request.parallel_tool_calls
        choice = effective_tool_choice(request)
        check_tool_choice(choice, self.name)
        mapped = to_openai_tool_choice(choice)
        if mapped is not None and tools:
            kwargs["tool_choice"] = mapped
        return kwargs

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send a chat completion request."""
        validate_request(request, provider=self.name, logger=self._logger)
        kwargs = self._build_kwargs(request)
        self._logger.debug(
            "OpenAI request",
            model=kwargs["model"],
            messages=len(kwargs["messages"]),
            tools=len(kwargs.get("tools", ())),
        )
        client = await self._get_client()
        try:
            response = await client.chat.completions.create(**kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise classify_error(e, provider=self.name) from e
        return self._parse_response(response, kwargs["model"])

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream chat completion chunks."""
        validate_request(request, provider=self.name, logger=self._logger)
        kwargs = self._build_kwargs(request)
        kwargs["stream"] = True
        self._logger.debug("OpenAI stream request", model=kwargs["model"])
        client = await self._get_client()
        try:
            stream = await client.chat.completions.create(**kwargs)
            async for event in stream:
                chunk = self._parse_chunk(event, kwargs["model"])
                if chunk is not None:
                    yield chunk
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise classify_error(e, provider=self.name, phase="stream") from e

    def _parse_response(self, response: Any, model: str) -> ChatResponse:
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise classify_error(
                ValueError("response contained no choices"), provider=self.name
            )
        choice = choices[0]
        raw_message = getattr(choice, "message", None)
        tool_calls = from_openai_tool_calls(getattr(raw_message, "tool_calls", None))
        content = getattr(raw_message, "content", None)

        finish_reason = _normalize_finish_reason(getattr(choice, "finish_reason", None))
        if tool_calls:
            finish_reason = "tool_calls"

        usage = None
        usage_raw = getattr(response, "usage", None)
        if usage_raw is not None:
            usage = Usage(
                prompt_tokens=int(getattr(usage_raw, "prompt_tokens", 0) or 0),
                completion_tokens=int(getattr(usage_raw, "completion_tokens", 0) or 0),
                total_tokens=int(getattr(usage_raw, "total_tokens", 0) or 0),
            )

        return ChatResponse(
            id=getattr(response, "id", None) or new_id("openai"),
            provider=self.name,
            model=getattr(response, "model", None) or model,
            message=Message(
                role="assistant",
                content=content if content is not None or tool_calls else "",
                tool_calls=tool_calls or None,
            ),
            finish_reason=finish_reason,
            usage=usage,
        )

    def _parse_chunk(self, event: Any, model: str) -> StreamChunk | None:
        # Usage-only chunks carry no choices.
        choices = getattr(event, "choices", None) or []
        if not choices:
            return None
        choice = choices[0]
        delta = getattr(choice, "delta", None)
        role = getattr(delta, "role", None)
        tool_calls = from_openai_tool_call_deltas(getattr(delta, "tool_calls", None))
        return StreamChunk(
            id=getattr(event, "id", None) or new_id("openai"),
            provider=self.name,
            model=getattr(event, "model", None) or model,
            delta=StreamDelta(
                role=role if role in ("system", "user", "assistant", "tool") else None,
                content=getattr(delta, "content", None),
                tool_calls=tool_calls or None,
            ),
            finish_reason=_normalize_finish_reason(getattr(choice, "finish_reason", None)),
        )

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client.clear()
        if client is None:
            return
        await client.close()


def _to_openai_message(message: Message) -> dict[str, Any]:
    out: dict[str, Any] = {"role": message.role, "content": message.content}
    if message.role == "tool":
        out["tool_call_id"] = message.tool_call_id
    elif message.name:
        out["name"] = message.name
    if message.tool_calls:
        out["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": tc.arguments},
            }
            for tc in message.tool_calls
        ]
    return out


def _normalize_finish_reason(reason: Any) -> FinishReason | None:
    if reason is None:
        return None
    value = str(reason)
    # Unrecognized reasons still end the turn, so they surface as "stop".
    return value if value in _FINISH_REASONS else "stop"  # type: ignore[return-value]
