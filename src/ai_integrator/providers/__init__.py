"""Provider implementations and the tag-based factory."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ai_integrator.errors import ConfigurationError

from .anthropic import AnthropicProvider
from .base import Provider
from .gemini import GeminiProvider
from .mock import MockProvider
from .openai import OpenAIProvider

if TYPE_CHECKING:
    from ai_integrator.config import ProviderConfig
    from ai_integrator.logging import DebugLogger

_BUILTIN_PROVIDERS: dict[str, type[Any]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "mock": MockProvider,
}


def available_providers() -> list[str]:
    """Tags accepted by ``create_provider`` without a custom factory."""
    return sorted(_BUILTIN_PROVIDERS)


def create_provider(config: ProviderConfig, *, logger: DebugLogger | None = None) -> Provider:
    """Build the adapter selected by ``config.provider``.

    A ``custom_provider`` factory takes precedence over the built-in tags and
    must return an object satisfying ``Provider``.
    """
    if config.custom_provider is not None:
        provider = config.custom_provider(config)
        if not isinstance(provider, Provider):
            raise ConfigurationError(
                f"custom_provider for {config.provider!r} did not return a Provider",
                provider=config.provider,
                hint="Implement name, config, chat, chat_stream, is_configured and aclose.",
            )
        return provider

    cls = _BUILTIN_PROVIDERS.get(config.provider)
    if cls is None:
        raise ConfigurationError(
            f"Unknown provider: {config.provider!r}",
            provider=config.provider,
            hint=f"Use one of {available_providers()} or pass custom_provider=...",
        )
    return cls(config, logger=logger)  # type: ignore[no-any-return]


__all__ = [
    "AnthropicProvider",
    "GeminiProvider",
    "MockProvider",
    "OpenAIProvider",
    "Provider",
    "available_providers",
    "create_provider",
]
