"""Anthropic Messages API provider."""

from __future__ import annotations

import asyncio
import importlib
from typing import TYPE_CHECKING, Any

from ai_integrator._singleflight import SingleFlightCell
from ai_integrator.errors import AIIntegratorError, ErrorType
from ai_integrator.logging import DebugLogger
from ai_integrator.providers._errors import classify_error, sdk_init_error, sdk_missing_error
from ai_integrator.providers._utils import (
    append_merged,
    check_tool_choice,
    effective_tool_choice,
    effective_tools,
    new_id,
    parse_arguments,
    require_api_key,
    resolve_model,
    split_system,
    stop_sequences,
    validate_request,
)
from ai_integrator.transformers import (
    from_anthropic_content,
    to_anthropic_tool_choice,
    to_anthropic_tools,
)
from ai_integrator.types import (
    ChatResponse,
    FunctionCallDelta,
    Message,
    StreamChunk,
    StreamDelta,
    ToolCallDelta,
    Usage,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ai_integrator.config import ProviderConfig
    from ai_integrator.types import ChatRequest, FinishReason

_DEFAULT_MAX_TOKENS = 4096

_STOP_REASONS: dict[str, FinishReason] = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
    "refusal": "content_filter",
}


class AnthropicProvider:
    """Anthropic Messages API provider."""

    name = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

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
            module = await asyncio.to_thread(importlib.import_module, "anthropic")
        except ImportError as e:
            raise sdk_missing_error(self.name, "anthropic", e) from e
        kwargs: dict[str, Any] = {"api_key": self._api_key}
        if self.config.base_url:
            kwargs["base_url"] = self.config.base_url
        try:
            client = module.AsyncAnthropic(**kwargs)
        except Exception as e:
            raise sdk_init_error(self.name, e) from e
        self._logger.debug("Anthropic client initialized")
        return client

    def _build_kwargs(self, request: ChatRequest) -> dict[str, Any]:
        system, conversation = split_system(request.messages)
        messages = _build_messages(conversation)
        if not messages:
            raise AIIntegratorError(
                ErrorType.INVALID_REQUEST,
                "Anthropic requires at least one non-system message",
                provider=self.name,
                retryable=False,
            )

        kwargs: dict[str, Any] = {
            "model": resolve_model(request, self.config, self.DEFAULT_MODEL),
            "messages": messages,
            "max_tokens": request.max_tokens or _DEFAULT_MAX_TOKENS,
        }
        if system:
            kwargs["system"] = system
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.top_p is not None:
            kwargs["top_p"] = request.top_p
        stops = stop_sequences(request.stop)
        if stops:
            kwargs["stop_sequences"] = stops
        if request.frequency_penalty is not None or request.presence_penalty is not None:
            self._logger.debug("Anthropic does not support penalties; ignoring them")

        tools = effective_tools(request)
        choice = effective_tool_choice(request)
        check_tool_choice(choice, self.name)
        if tools:
            kwargs["tools"] = to_anthropic_tools(tools)
            mapped = to_anthropic_tool_choice(choice, request.parallel_tool_calls)
            if mapped is not None:
                kwargs["tool_choice"] = mapped
        return kwargs

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send a Messages API request."""
        validate_request(request, provider=self.name, logger=self._logger)
        kwargs = self._build_kwargs(request)
        self._logger.debug(
            "Anthropic request",
            model=kwargs["model"],
            messages=len(kwargs["messages"]),
            tools=len(kwargs.get("tools", ())),
        )
        client = await self._get_client()
        try:
            response = await client.messages.create(**kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise classify_error(e, provider=self.name) from e
        return self._parse_response(response, kwargs["model"])

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream Messages API events as normalized chunks."""
        validate_request(request, provider=self.name, logger=self._logger)
        kwargs = self._build_kwargs(request)
        kwargs["stream"] = True
        self._logger.debug("Anthropic stream request", model=kwargs["model"])
        client = await self._get_client()
        state = _StreamState(message_id=new_id("anthropic"), model=kwargs["model"])
        try:
            stream = await client.messages.create(**kwargs)
            async for event in stream:
                chunk = self._parse_event(event, state)
                if chunk is not None:
                    yield chunk
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise classify_error(e, provider=self.name, phase="stream") from e

    def _parse_response(self, response: Any, model: str) -> ChatResponse:
        content = getattr(response, "content", None) or []
        text = "".join(
            getattr(block, "text", "") or ""
            for block in content
            if getattr(block, "type", None) == "text"
        )
        tool_calls = from_anthropic_content(content)

        finish_reason = _normalize_stop_reason(getattr(response, "stop_reason", None))
        if tool_calls:
            finish_reason = "tool_calls"

        usage = None
        usage_raw = getattr(response, "usage", None)
        if usage_raw is not None:
            input_tokens = int(getattr(usage_raw, "input_tokens", 0) or 0)
            output_tokens = int(getattr(usage_raw, "output_tokens", 0) or 0)
            usage = Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )

        return ChatResponse(
            id=getattr(response, "id", None) or new_id("anthropic"),
            provider=self.name,
            model=getattr(response, "model", None) or model,
            message=Message(
                role="assistant",
                content=text if text or not tool_calls else None,
                tool_calls=tool_calls or None,
            ),
            finish_reason=finish_reason,
            usage=usage,
        )

    def _parse_event(self, event: Any, state: _StreamState) -> StreamChunk | None:
        event_type = getattr(event, "type", None)

        if event_type == "message_start":
            message = getattr(event, "message", None)
            state.message_id = getattr(message, "id", None) or state.message_id
            state.model = getattr(message, "model", None) or state.model
            return state.chunk(StreamDelta(role="assistant"))

        if event_type == "content_block_start":
            block = getattr(event, "content_block", None)
            if getattr(block, "type", None) != "tool_use":
                return None
            tool_index = state.open_tool_block(getattr(event, "index", 0))
            return state.chunk(
                StreamDelta(
                    tool_calls=[
                        ToolCallDelta(
                            index=tool_index,
                            id=getattr(block, "id", None),
                            type="function",
                            function=FunctionCallDelta(
                                name=getattr(block, "name", None), arguments=""
                            ),
                        )
                    ]
                )
            )

        if event_type == "content_block_delta":
            delta = getattr(event, "delta", None)
            delta_type = getattr(delta, "type", None)
            if delta_type == "text_delta":
                return state.chunk(StreamDelta(content=getattr(delta, "text", "")))
            if delta_type == "input_json_delta":
                tool_index = state.tool_indices.get(getattr(event, "index", 0))
                if tool_index is None:
                    return None
                return state.chunk(
                    StreamDelta(
                        tool_calls=[
                            ToolCallDelta(
                                index=tool_index,
                                function=FunctionCallDelta(
                                    arguments=getattr(delta, "partial_json", "")
                                ),
                            )
                        ]
                    )
                )
            return None

        if event_type == "message_delta":
            stop_reason = getattr(getattr(event, "delta", None), "stop_reason", None)
            if stop_reason is None:
                return None
            return state.chunk(
                StreamDelta(), finish_reason=_normalize_stop_reason(stop_reason)
            )

        # message_stop, content_block_stop, ping
        return None

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client.clear()
        if client is None:
            return
        await client.close()


class _StreamState:
    """Per-stream bookkeeping: message identity and tool block indices."""

    def __init__(self, *, message_id: str, model: str) -> None:
        self.message_id = message_id
        self.model = model
        # content block index -> tool-call index
        self.tool_indices: dict[int, int] = {}

    def open_tool_block(self, block_index: int) -> int:
        tool_index = len(self.tool_indices)
        self.tool_indices[block_index] = tool_index
        return tool_index

    def chunk(
        self, delta: StreamDelta, *, finish_reason: FinishReason | None = None
    ) -> StreamChunk:
        return StreamChunk(
            id=self.message_id,
            provider=AnthropicProvider.name,
            model=self.model,
            delta=delta,
            finish_reason=finish_reason,
        )


def _build_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Translate non-system messages, merging consecutive same-role turns."""
    entries: list[dict[str, Any]] = []
    for m in messages:
        if m.role == "tool":
            append_merged(
                entries,
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": m.tool_call_id,
                            "content": m.content or "",
                        }
                    ],
                },
                key="content",
            )
        elif m.role == "assistant":
            blocks: list[dict[str, Any]] = []
            if m.content:
                blocks.append({"type": "text", "text": m.content})
            for tc in m.tool_calls or ():
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": parse_arguments(tc.arguments),
                    }
                )
            if blocks:
                append_merged(entries, {"role": "assistant", "content": blocks}, key="content")
        else:
            append_merged(entries, {"role": "user", "content": m.content or ""}, key="content")
    return entries


def _normalize_stop_reason(stop_reason: Any) -> FinishReason | None:
    if stop_reason is None:
        return None
    # pause_turn and future reasons still end the turn, so they surface as "stop".
    return _STOP_REASONS.get(str(stop_reason).lower(), "stop")
