"""Mock provider for testing."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ai_integrator.logging import DebugLogger
from ai_integrator.providers._utils import (
    check_tool_choice,
    effective_tool_choice,
    new_id,
    resolve_model,
    validate_request,
)
from ai_integrator.types import ChatResponse, Message, StreamChunk, StreamDelta, Usage

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ai_integrator.config import ProviderConfig
    from ai_integrator.types import ChatRequest


class MockProvider:
    """Mock provider for offline use without API calls.

    Echoes the last user message; needs no API key.
    """

    name = "mock"
    DEFAULT_MODEL = "mock-echo"

    def __init__(self, config: ProviderConfig, *, logger: DebugLogger | None = None) -> None:
        self.config = config
        self._logger = logger or DebugLogger(config.debug)

    def is_configured(self) -> bool:
        return True

    def _reply(self, request: ChatRequest) -> str:
        validate_request(request, provider=self.name, logger=self._logger)
        check_tool_choice(effective_tool_choice(request), self.name)
        text = next(
            (m.content for m in reversed(request.messages) if m.role == "user" and m.content),
            "",
        )
        return f"echo: {text[:100]}"

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Return a deterministic echo response."""
        reply = self._reply(request)
        prompt_tokens = sum(len((m.content or "").split()) for m in request.messages)
        completion_tokens = len(reply.split())
        return ChatResponse(
            id=new_id("mock"),
            provider=self.name,
            model=resolve_model(request, self.config, self.DEFAULT_MODEL),
            message=Message.assistant(reply),
            finish_reason="stop",
            usage=Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream the echo response word by word."""
        reply = self._reply(request)
        chunk_id = new_id("mock")
        model = resolve_model(request, self.config, self.DEFAULT_MODEL)
        words = reply.split(" ")
        for i, word in enumerate(words):
            yield StreamChunk(
                id=chunk_id,
                provider=self.name,
                model=model,
                delta=StreamDelta(
                    role="assistant" if i == 0 else None,
                    content=word if i == 0 else f" {word}",
                ),
            )
        yield StreamChunk(id=chunk_id, provider=self.name, model=model, finish_reason="stop")

    async def aclose(self) -> None:
        return None
