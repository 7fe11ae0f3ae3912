"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, marker registration,
and automatic API test skipping. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os
from typing import Any

import pytest

from ai_integrator.types import ChatResponse, Message, StreamChunk, Usage

# =============================================================================
# Test Doubles
# =============================================================================


def make_response(provider: str, text: str = "ok", *, model: str = "fake-model") -> ChatResponse:
    """Build a minimal assistant response."""
    return ChatResponse(
        id=f"{provider}-resp",
        provider=provider,
        model=model,
        message=Message.assistant(text),
        finish_reason="stop",
        usage=Usage(prompt_tokens=1, completion_tokens=1, total_tokens=2),
    )


@dataclass
class FakeProvider:
    """Provider test double satisfying the ``Provider`` protocol.

    ``script`` is consumed by ``chat`` in order (responses are returned,
    exceptions raised); an empty script returns ``ok:<provider>``.
    ``stream_script`` is replayed by every ``chat_stream`` call.
    """

    name: str = "fake"
    config: Any = None
    script: list[ChatResponse | BaseException] = field(default_factory=list)
    stream_script: list[StreamChunk | BaseException] = field(default_factory=list)
    calls: int = 0
    stream_calls: int = 0
    streams_open: int = 0
    requests: list[Any] = field(default_factory=list)
    closed: bool = False

    async def chat(self, request: Any) -> ChatResponse:
        self.calls += 1
        self.requests.append(request)
        if not self.script:
            return make_response(self.name, f"ok:{self.name}")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def chat_stream(self, request: Any):
        self.stream_calls += 1
        self.requests.append(request)
        self.streams_open += 1
        try:
            for item in self.stream_script:
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.streams_open -= 1

    def is_configured(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears OPENAI_*, ANTHROPIC_*, GEMINI_* and GOOGLE_* env vars so API keys
    never leak in from the developer's shell.
    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith(("OPENAI_", "ANTHROPIC_", "GEMINI_", "GOOGLE_")):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


# =============================================================================
# API Test Configuration
# =============================================================================

# Cheapest current models for live smoke tests.
_OPENAI_TEST_MODEL = "gpt-4o-mini"
_ANTHROPIC_TEST_MODEL = "claude-haiku-4-5"
_GEMINI_TEST_MODEL = "gemini-2.0-flash"


def _require_env(name: str) -> str:
    key = os.getenv(name)
    if not key:
        pytest.skip(f"{name} not set")
    return key


@pytest.fixture
def openai_api_key():
    """Return OPENAI_API_KEY or skip the test if unavailable."""
    return _require_env("OPENAI_API_KEY")


@pytest.fixture
def anthropic_api_key():
    """Return ANTHROPIC_API_KEY or skip the test if unavailable."""
    return _require_env("ANTHROPIC_API_KEY")


@pytest.fixture
def gemini_api_key():
    """Return GEMINI_API_KEY or skip the test if unavailable."""
    return _require_env("GEMINI_API_KEY")


@pytest.fixture
def live_models() -> dict[str, str]:
    """Models used by API tests, keyed by provider."""
    return {
        "openai": _OPENAI_TEST_MODEL,
        "anthropic": _ANTHROPIC_TEST_MODEL,
        "gemini": _GEMINI_TEST_MODEL,
    }
