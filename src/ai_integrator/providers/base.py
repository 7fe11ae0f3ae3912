"""Provider protocol: the capability interface every adapter satisfies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from ai_integrator.config import ProviderConfig
    from ai_integrator.types import ChatRequest, ChatResponse, StreamChunk


@runtime_checkable
class Provider(Protocol):
    """Minimal provider protocol: chat, chat_stream, is_configured, aclose."""

    name: str
    config: ProviderConfig

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send one request and return the normalized response."""
        ...

    def chat_stream(self, request: ChatRequest) -> AsyncGenerator[StreamChunk, None]:
        """Stream normalized chunks for one request; callers may ``aclose()`` it early."""
        ...

    def is_configured(self) -> bool:
        """Whether the provider holds the credentials it needs."""
        ...

    async def aclose(self) -> None:
        """Release SDK client resources."""
        ...
