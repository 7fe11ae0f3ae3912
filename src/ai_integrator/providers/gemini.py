"""Gemini provider implementation (google-genai SDK)."""

from __future__ import annotations

import asyncio
import importlib
import json
from typing import TYPE_CHECKING, Any

from ai_integrator._singleflight import SingleFlightCell
from ai_integrator.errors import AIIntegratorError, ErrorType
from ai_integrator.logging import DebugLogger
from ai_integrator.providers._errors import (
    classify_gemini_error,
    sdk_init_error,
    sdk_missing_error,
)
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
    tool_names_by_call_id,
    validate_request,
)
from ai_integrator.transformers import (
    from_gemini_parts,
    to_gemini_tool_config,
    to_gemini_tools,
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

_FINISH_REASONS: dict[str, FinishReason] = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
    "BLOCKLIST": "content_filter",
    "PROHIBITED_CONTENT": "content_filter",
    "SPII": "content_filter",
}


class GeminiProvider:
    """Google Gemini API provider."""

    name = "gemini"
    DEFAULT_MODEL = "gemini-2.0-flash"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        logger: DebugLogger | None = None,
        client: Any = None,
    ) -> None:
        """Create provider from config; the SDK client is created on first use."""
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
        """Import the SDK off the event loop and build the client."""
        try:
            genai = await asyncio.to_thread(importlib.import_module, "google.genai")
        except ImportError as e:
            raise sdk_missing_error(self.name, "google-genai", e) from e
        kwargs: dict[str, Any] = {"api_key": self._api_key}
        if self.config.base_url:
            kwargs["http_options"] = {"base_url": self.config.base_url}
        try:
            client = genai.Client(**kwargs)
        except Exception as e:
            raise sdk_init_error(self.name, e) from e
        self._logger.debug("Gemini client initialized")
        return client

    def _build_call(self, request: ChatRequest) -> tuple[str, list[dict[str, Any]], dict[str, Any]]:
        """Return (model, contents, config) for generate_content."""
        system, conversation = split_system(request.messages)
        contents = self._build_contents(conversation, tool_names_by_call_id(request.messages))
        if not contents:
            raise AIIntegratorError(
                ErrorType.INVALID_REQUEST,
                "Gemini requires at least one non-system message",
                provider=self.name,
                retryable=False,
            )

        config: dict[str, Any] = {}
        if system:
            config["system_instruction"] = system
        optional = {
            "temperature": request.temperature,
            "max_output_tokens": request.max_tokens,
            "top_p": request.top_p,
            "frequency_penalty": request.frequency_penalty,
            "presence_penalty": request.presence_penalty,
            "stop_sequences": stop_sequences(request.stop),
        }
        config.update({k: v for k, v in optional.items() if v is not None})

        tools = effective_tools(request)
        choice = effective_tool_choice(request)
        check_tool_choice(choice, self.name)
        if tools:
            config["tools"] = to_gemini_tools(tools)
            tool_config = to_gemini_tool_config(choice)
            if tool_config is not None:
                config["tool_config"] = tool_config
            if request.parallel_tool_calls is not None:
                self._logger.debug("Gemini does not support parallel_tool_calls; ignoring it")

        return resolve_model(request, self.config, self.DEFAULT_MODEL), contents, config

    def _build_contents(
        self, messages: list[Message], call_names: dict[str, str]
    ) -> list[dict[str, Any]]:
        contents: list[dict[str, Any]] = []
        for m in messages:
            if m.role == "tool":
                name = m.name or call_names.get(m.tool_call_id or "")
                if not name:
                    raise AIIntegratorError(
                        ErrorType.INVALID_REQUEST,
                        f"Cannot resolve function name for tool_call_id {m.tool_call_id!r}; "
                        "set Message.name or include the assistant tool call",
                        provider=self.name,
                        retryable=False,
                    )
                part = {
                    "function_response": {
                        "name": name,
                        "response": _function_response_payload(m.content),
                    }
                }
                append_merged(contents, {"role": "user", "parts": [part]}, key="parts")
            elif m.role == "assistant":
                parts: list[dict[str, Any]] = []
                if m.content:
                    parts.append({"text": m.content})
                for tc in m.tool_calls or ():
                    parts.append(
                        {"function_call": {"name": tc.name, "args": parse_arguments(tc.arguments)}}
                    )
                if parts:
                    append_merged(contents, {"role": "model", "parts": parts}, key="parts")
            else:
                append_merged(
                    contents, {"role": "user", "parts": [{"text": m.content or ""}]}, key="parts"
                )
        return contents

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Generate content from the Gemini model."""
        validate_request(request, provider=self.name, logger=self._logger)
        model, contents, config = self._build_call(request)
        self._logger.debug(
            "Gemini request", model=model, contents=len(contents), tools=len(config.get("tools", ()))
        )
        client = await self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=model, contents=contents, config=config
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise classify_gemini_error(e) from e
        return self._parse_response(response, model)

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream content from the Gemini model."""
        validate_request(request, provider=self.name, logger=self._logger)
        model, contents, config = self._build_call(request)
        self._logger.debug("Gemini stream request", model=model)
        client = await self._get_client()
        stream_id: str | None = None
        stream_model = model
        tool_index = 0
        finished = False
        try:
            stream = await client.aio.models.generate_content_stream(
                model=model, contents=contents, config=config
            )
            async for response in stream:
                stream_id = stream_id or getattr(response, "response_id", None) or new_id("gemini")
                candidate = _first_candidate(response)
                parts = _candidate_parts(candidate)
                text = _join_text(parts)

                fragments: list[ToolCallDelta] = []
                for call in from_gemini_parts(parts):
                    fragments.append(
                        ToolCallDelta(
                            index=tool_index,
                            id=call.id,
                            type="function",
                            function=FunctionCallDelta(name=call.name, arguments=call.arguments),
                        )
                    )
                    tool_index += 1

                stream_model = getattr(response, "model_version", None) or stream_model
                finish_reason = _response_finish_reason(response, candidate)
                if finish_reason == "stop" and tool_index:
                    finish_reason = "tool_calls"
                if finished:
                    finish_reason = None
                if not text and not fragments and finish_reason is None:
                    continue
                finished = finished or finish_reason is not None
                yield StreamChunk(
                    id=stream_id,
                    provider=self.name,
                    model=stream_model,
                    delta=StreamDelta(
                        role="assistant",
                        content=text or None,
                        tool_calls=fragments or None,
                    ),
                    finish_reason=finish_reason,
                )
            if not finished:
                yield StreamChunk(
                    id=stream_id or new_id("gemini"),
                    provider=self.name,
                    model=stream_model,
                    delta=StreamDelta(role="assistant"),
                    finish_reason="tool_calls" if tool_index else "stop",
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise classify_gemini_error(e, phase="stream") from e

    def _parse_response(self, response: Any, model: str) -> ChatResponse:
        candidate = _first_candidate(response)
        parts = _candidate_parts(candidate)
        text = _join_text(parts)
        tool_calls = from_gemini_parts(parts)

        finish_reason = _response_finish_reason(response, candidate)
        if tool_calls:
            finish_reason = "tool_calls"

        usage = None
        meta = getattr(response, "usage_metadata", None)
        if meta is not None:
            prompt = int(getattr(meta, "prompt_token_count", 0) or 0)
            completion = int(getattr(meta, "candidates_token_count", 0) or 0)
            total = int(getattr(meta, "total_token_count", 0) or 0)
            usage = Usage(
                prompt_tokens=prompt,
                completion_tokens=completion,
                total_tokens=total or prompt + completion,
            )

        return ChatResponse(
            id=getattr(response, "response_id", None) or new_id("gemini"),
            provider=self.name,
            model=getattr(response, "model_version", None) or model,
            message=Message(
                role="assistant",
                content=text if text or not tool_calls else None,
                tool_calls=tool_calls or None,
            ),
            finish_reason=finish_reason,
            usage=usage,
        )

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client.clear()
        if client is None:
            return
        close = getattr(getattr(client, "aio", None), "aclose", None)
        if close is not None:
            await close()


def _function_response_payload(content: str | None) -> dict[str, Any]:
    """Gemini expects an object; wrap non-object tool output under ``result``."""
    if not content:
        return {}
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        return {"result": content}
    return parsed if isinstance(parsed, dict) else {"result": parsed}


def _first_candidate(response: Any) -> Any:
    candidates = getattr(response, "candidates", None) or []
    return candidates[0] if candidates else None


def _response_finish_reason(response: Any, candidate: Any) -> FinishReason | None:
    if candidate is None and _prompt_block_reason(response) is not None:
        return "content_filter"
    return _normalize_finish_reason(getattr(candidate, "finish_reason", None))


def _prompt_block_reason(response: Any) -> str | None:
    """Reason the prompt itself was blocked; such responses carry no candidates."""
    reason = getattr(getattr(response, "prompt_feedback", None), "block_reason", None)
    if reason is None:
        return None
    key = str(getattr(reason, "name", reason)).upper()
    return None if key == "BLOCKED_REASON_UNSPECIFIED" else key


def _candidate_parts(candidate: Any) -> list[Any]:
    content = getattr(candidate, "content", None)
    return list(getattr(content, "parts", None) or [])


def _join_text(parts: list[Any]) -> str:
    return "".join(
        text
        for part in parts
        if isinstance(text := getattr(part, "text", None), str) and not getattr(part, "thought", False)
    )


def _normalize_finish_reason(reason: Any) -> FinishReason | None:
    if reason is None:
        return None
    # Enum members expose .name; plain strings pass through.
    key = str(getattr(reason, "name", reason)).upper()
    if key == "FINISH_REASON_UNSPECIFIED":
        return None
    # Unrecognized reasons (OTHER, MALFORMED_FUNCTION_CALL) still end the turn.
    return _FINISH_REASONS.get(key, "stop")
