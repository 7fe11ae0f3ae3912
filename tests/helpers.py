"""Test helpers (small, reusable doubles).

Fake SDK clients shaped like the vendor SDKs' async surfaces, plus builders
for SDK-style errors. Adapters accept these through ``client=``.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import httpx

from ai_integrator.config import ClientConfig, FallbackConfig
from tests.conftest import FakeProvider

_REQUEST = httpx.Request("POST", "https://api.example.test/v1")


async def aiter_events(events: list[Any]):
    """Async iterator over *events*; exceptions in the list are raised in place."""
    for event in events:
        if isinstance(event, BaseException):
            raise event
        yield event


def openai_client(create: Any) -> SimpleNamespace:
    """Fake ``AsyncOpenAI`` exposing ``chat.completions.create``."""
    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create)),
        close=AsyncMock(),
    )


def anthropic_client(create: Any) -> SimpleNamespace:
    """Fake ``AsyncAnthropic`` exposing ``messages.create``."""
    return SimpleNamespace(messages=SimpleNamespace(create=create), close=AsyncMock())


def gemini_client(
    generate: Any = None, generate_stream: Any = None
) -> SimpleNamespace:
    """Fake ``genai.Client`` exposing the ``aio.models`` surface."""
    return SimpleNamespace(
        aio=SimpleNamespace(
            models=SimpleNamespace(
                generate_content=generate or AsyncMock(),
                generate_content_stream=generate_stream or AsyncMock(),
            ),
            aclose=AsyncMock(),
        )
    )


class StatusError(Exception):
    """SDK-style error carrying an HTTP response."""

    def __init__(
        self, status_code: int, message: str = "", *, headers: dict[str, str] | None = None
    ) -> None:
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.response = httpx.Response(status_code, headers=headers, request=_REQUEST)


def openai_chat_completion(
    content: str | None = "Hello!",
    *,
    tool_calls: list[Any] | None = None,
    finish_reason: str = "stop",
    model: str = "gpt-4o-mini",
) -> SimpleNamespace:
    return SimpleNamespace(
        id="chatcmpl-1",
        model=model,
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ],
        usage=SimpleNamespace(prompt_tokens=5, completion_tokens=7, total_tokens=12),
    )


def openai_chunk(
    *,
    content: str | None = None,
    role: str | None = None,
    tool_calls: list[Any] | None = None,
    finish_reason: str | None = None,
) -> SimpleNamespace:
    return SimpleNamespace(
        id="chatcmpl-stream",
        model="gpt-4o-mini",
        choices=[
            SimpleNamespace(
                delta=SimpleNamespace(role=role, content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ],
    )


def client_config(
    primary: FakeProvider, *fallbacks: FakeProvider, **kwargs: Any
) -> ClientConfig:
    """ClientConfig wiring fake providers through ``custom_provider`` factories."""

    def factory(fake: FakeProvider):
        def build(config: Any) -> FakeProvider:
            fake.config = config
            return fake

        return build

    return ClientConfig(
        provider=primary.name,
        custom_provider=factory(primary),
        fallbacks=[
            FallbackConfig(provider=f.name, custom_provider=factory(f), priority=i)
            for i, f in enumerate(fallbacks)
        ],
        **kwargs,
    )
