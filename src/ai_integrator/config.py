"""Configuration: frozen provider and client settings.

API keys are auto-resolved from the standard environment variable of each
built-in provider when not passed explicitly.

Example:
    config = ClientConfig(
        provider="openai",
        fallbacks=[FallbackConfig(provider="anthropic", priority=1)],
        timeout_s=30,
    )
"""

from __future__ import annotations

import os
from typing import Any, Callable

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

from ai_integrator.retry import RetryPolicy

load_dotenv()

# Provider-specific API key environment variable names, in lookup order
_API_KEY_ENV_VARS: dict[str, tuple[str, ...]] = {
    "openai": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
}


def api_key_env_var(provider: str) -> str | None:
    """Return the primary API key env var for a built-in provider."""
    names = _API_KEY_ENV_VARS.get(provider)
    return names[0] if names else None


def _resolve_env_api_key(provider: str) -> str | None:
    for name in _API_KEY_ENV_VARS.get(provider, ()):
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


class ProviderConfig(BaseModel):
    """Credentials and endpoint settings for one provider.

    ``provider`` selects the adapter: ``"openai"``, ``"anthropic"``,
    ``"gemini"``, ``"mock"``, or any identifier when ``custom_provider`` is a
    factory ``(config) -> Provider``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    provider: str = Field(min_length=1)
    api_key: SecretStr | None = None
    base_url: str | None = None
    organization: str | None = None
    default_model: str | None = None
    debug: bool = False
    custom_provider: Callable[..., Any] | None = Field(default=None, repr=False)

    @field_validator("provider", "base_url", "organization", "default_model", mode="before")
    @classmethod
    def strip_strings(cls, v: Any) -> Any:
        """Trim surrounding whitespace; map empty optional strings to None."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("base_url", "organization", "default_model")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("api_key", mode="before")
    @classmethod
    def normalize_api_key(cls, v: Any) -> Any:
        """Normalize api_key: trim whitespace, map empty to None, wrap in SecretStr."""
        if v is None:
            return None
        if isinstance(v, SecretStr):
            s = v.get_secret_value().strip()
            return SecretStr(s) if s else None
        if isinstance(v, str):
            s = v.strip()
            return SecretStr(s) if s else None
        return v

    @model_validator(mode="before")
    @classmethod
    def resolve_api_key_from_env(cls, data: Any) -> Any:
        """Fill a missing api_key from the provider's standard env var."""
        if not isinstance(data, dict):
            return data
        key = data.get("api_key")
        if isinstance(key, SecretStr):
            key = key.get_secret_value()
        if isinstance(key, str) and key.strip():
            return data
        provider = data.get("provider")
        if isinstance(provider, str):
            resolved = _resolve_env_api_key(provider.strip())
            if resolved is not None:
                return {**data, "api_key": resolved}
        return data

    @property
    def api_key_value(self) -> str | None:
        """Return the raw API key, or None when unset."""
        return self.api_key.get_secret_value() if self.api_key else None


class FallbackConfig(ProviderConfig):
    """A fallback provider. Lower ``priority`` values are tried earlier."""

    priority: int = 0


class ClientConfig(ProviderConfig):
    """Primary provider settings plus fallbacks, retry policy and timeout."""

    fallbacks: list[FallbackConfig] = Field(default_factory=list)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    #: Overall per-provider deadline (covering all retries); None disables it.
    timeout_s: float | None = Field(default=None, gt=0)
