"""AIClient: ordered fallback across providers, with retry and timeout.

Example:
    config = ClientConfig(
        provider="openai",
        fallbacks=[FallbackConfig(provider="anthropic")],
        timeout_s=30,
    )
    async with AIClient(config) as client:
        response = await client.chat(
            ChatRequest(messages=[Message.user("Hello")])
        )
        print(response.message.content)
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

from ai_integrator.errors import AIIntegratorError, ErrorType
from ai_integrator.logging import DebugLogger
from ai_integrator.providers import create_provider
from ai_integrator.retry import retry_async, retry_with_timeout

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

    from ai_integrator.config import ClientConfig
    from ai_integrator.providers.base import Provider
    from ai_integrator.types import ChatRequest, ChatResponse, StreamChunk


class AIClient:
    """Provider-agnostic chat client.

    Providers are built once at construction: the primary first, then the
    fallbacks in ascending ``priority`` (ties keep declaration order). Each
    call walks that list until one provider succeeds; nothing is cached
    between calls.
    """

    def __init__(self, config: ClientConfig, *, logger: DebugLogger | None = None) -> None:
        self.config = config
        self._logger = logger or DebugLogger(config.debug)
        fallbacks = sorted(config.fallbacks, key=lambda f: f.priority)
        self._providers: list[Provider] = [
            create_provider(config, logger=self._logger),
            *(create_provider(f, logger=self._logger) for f in fallbacks),
        ]
        self._logger.info("Primary provider: %s", self._providers[0].name)
        if fallbacks:
            self._logger.info(
                "Fallback providers: %s", ", ".join(p.name for p in self._providers[1:])
            )

    @property
    def primary_provider(self) -> str:
        return self._providers[0].name

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    def has_provider(self, name: str) -> bool:
        return any(p.name == name for p in self._providers)

    @property
    def debug(self) -> bool:
        return self._logger.enabled

    def set_debug(self, enabled: bool) -> None:
        """Toggle debug logging for this client and its providers."""
        self._logger.set_enabled(enabled)

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send *request*, falling back through providers on failure.

        Each provider is retried per ``config.retry`` (bounded by
        ``config.timeout_s`` when set) and then given up on, whatever the
        failure kind. The last provider's error is raised when all fail.
        """
        last_error: AIIntegratorError | None = None
        for i, provider in enumerate(self._providers):
            self._logger.debug(
                "Attempting request with %s", provider.name, attempt=i + 1, of=len(self._providers)
            )
            try:
                response = await self._call(provider, request)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = _as_integrator_error(e, provider.name)
                self._logger.warning(
                    "Provider %s failed: %s",
                    provider.name,
                    last_error.message,
                    kind=last_error.kind.value,
                    retryable=last_error.retryable,
                )
                continue
            self._logger.debug("Request succeeded with %s", provider.name)
            return response

        if last_error is None:  # pragma: no cover
            raise RuntimeError("AIClient has no providers")
        self._logger.error("All providers failed")
        raise last_error

    async def _call(self, provider: Provider, request: ChatRequest) -> ChatResponse:
        def factory() -> Any:
            return provider.chat(request)

        timeout_s = self.config.timeout_s
        if timeout_s is not None:
            return await retry_with_timeout(factory, timeout_s, policy=self.config.retry)
        return await retry_async(factory, policy=self.config.retry)

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream *request* from the first provider that completes a stream.

        Streams are not retried. A provider that fails mid-stream hands over
        to the next one, which starts from the beginning; chunks already
        yielded are not withdrawn.
        """
        last_error: AIIntegratorError | None = None
        for provider in self._providers:
            self._logger.debug("Attempting stream with %s", provider.name)
            try:
                async with aclosing(provider.chat_stream(request)) as stream:
                    async for chunk in stream:
                        yield chunk
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = _as_integrator_error(e, provider.name)
                self._logger.warning(
                    "Stream from %s failed: %s",
                    provider.name,
                    last_error.message,
                    kind=last_error.kind.value,
                )
                continue
            return

        if last_error is None:  # pragma: no cover
            raise RuntimeError("AIClient has no providers")
        self._logger.error("All providers failed for stream")
        raise last_error

    async def aclose(self) -> None:
        """Close SDK clients held by every provider."""
        for provider in self._providers:
            await provider.aclose()

    async def __aenter__(self) -> AIClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def _as_integrator_error(exc: Exception, provider: str) -> AIIntegratorError:
    if isinstance(exc, AIIntegratorError):
        if exc.provider is None:
            exc.provider = provider
        return exc
    return AIIntegratorError(
        ErrorType.UNKNOWN,
        str(exc) or type(exc).__name__,
        provider=provider,
        retryable=False,
        original_error=exc,
    )
