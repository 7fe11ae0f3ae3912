"""Shared provider-side error classification.

Adapters never let raw SDK exceptions escape: everything is mapped into
``AIIntegratorError`` here. OpenAI and Anthropic expose structured HTTP status
codes; Gemini failures additionally go through an isolated message heuristic
because its errors do not reliably carry a usable status (an invalid API key
is reported as a 400, for instance).
"""

from __future__ import annotations

import asyncio
import re
import socket
from typing import Any

import httpx

from ai_integrator.config import api_key_env_var
from ai_integrator.errors import AIIntegratorError, ErrorType, _walk_exception_chain

_PROVIDER_LABELS = {"openai": "OpenAI", "anthropic": "Anthropic", "gemini": "Gemini"}

_INVALID_REQUEST_STATUSES = frozenset({400, 404, 413, 422})


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status", "code"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and not isinstance(value, bool) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


_PROTO_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)s$")


def _retry_info_seconds(exc: BaseException) -> float | None:
    """Read a Google-style ``RetryInfo`` delay from Gemini error details.

    ``ClientError.details`` looks like::

        {"error": {"details": [{"@type": "...RetryInfo", "retryDelay": "8s"}]}}
    """
    details: Any = getattr(exc, "details", None)
    if not isinstance(details, dict):
        return None
    error: Any = details.get("error")
    if not isinstance(error, dict):
        return None
    entries: Any = error.get("details")
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if not isinstance(entry, dict) or "RetryInfo" not in str(entry.get("@type", "")):
            continue
        delay = entry.get("retryDelay")
        m = _PROTO_DURATION_RE.match(delay) if isinstance(delay, str) else None
        if m:
            return float(m.group(1))
    return None


def extract_retry_after_s(exc: BaseException) -> float | None:
    """Walk the exception chain to find a Retry-After delay in seconds."""
    for e in _walk_exception_chain(exc):
        value = getattr(e, "retry_after", None)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
            return float(value)

        retry_info = _retry_info_seconds(e)
        if retry_info is not None:
            return retry_info

        response = getattr(e, "response", None)
        headers: Any = getattr(response, "headers", None)
        if headers is None:
            continue
        try:
            raw = headers.get("Retry-After")
        except (AttributeError, TypeError):
            raw = None
        if isinstance(raw, str) and raw.strip():
            try:
                seconds = float(raw)
            except ValueError:
                continue
            if seconds >= 0:
                return seconds
    return None


def transport_error_kind(exc: BaseException) -> ErrorType | None:
    """Return TIMEOUT/NETWORK for transport-level failures anywhere in the chain.

    The OpenAI and Anthropic SDKs wrap transport failures in
    ``APITimeoutError``/``APIConnectionError``; those are matched by class
    name so this module never imports a vendor SDK.
    """
    for e in _walk_exception_chain(exc):
        if isinstance(e, (httpx.TimeoutException, TimeoutError, asyncio.TimeoutError)):
            return ErrorType.TIMEOUT
        if _sdk_error_named(e, "APITimeoutError"):
            return ErrorType.TIMEOUT
    for e in _walk_exception_chain(exc):
        if isinstance(e, (httpx.ConnectError, httpx.NetworkError, socket.gaierror, ConnectionError)):
            return ErrorType.NETWORK
        if _sdk_error_named(e, "APIConnectionError"):
            return ErrorType.NETWORK
    return None


def _sdk_error_named(exc: BaseException, name: str) -> bool:
    return any(cls.__name__ == name for cls in type(exc).__mro__)


def status_error_kind(status_code: int) -> tuple[ErrorType, bool]:
    """Map an HTTP status to (kind, retryable)."""
    if status_code in (401, 403):
        return ErrorType.AUTHENTICATION, False
    if status_code == 429:
        return ErrorType.RATE_LIMIT, True
    if status_code == 408:
        return ErrorType.TIMEOUT, True
    if status_code in _INVALID_REQUEST_STATUSES:
        return ErrorType.INVALID_REQUEST, False
    if status_code >= 500:
        return ErrorType.API_ERROR, True
    return ErrorType.UNKNOWN, False


def _auth_hint(provider: str, kind: ErrorType) -> str | None:
    if kind is not ErrorType.AUTHENTICATION:
        return None
    env_var = api_key_env_var(provider) or "the provider API key"
    return f"Check credentials/permissions (try setting {env_var} or ProviderConfig.api_key)."


def _build(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
    kind: ErrorType,
    retryable: bool,
    status_code: int | None,
) -> AIIntegratorError:
    label = _PROVIDER_LABELS.get(provider, provider)
    status_note = f" (status={status_code})" if isinstance(status_code, int) else ""
    cause = str(exc)
    msg = f"{label} {phase} failed{status_note}"
    return AIIntegratorError(
        kind,
        f"{msg}: {cause}" if cause else msg,
        status_code=status_code,
        provider=provider,
        retryable=retryable,
        original_error=exc,
        hint=_auth_hint(provider, kind),
        retry_after_s=extract_retry_after_s(exc),
    )


def _passthrough(exc: AIIntegratorError, provider: str) -> AIIntegratorError:
    # Already classified: fill in missing context only.
    if exc.provider is None:
        exc.provider = provider
    return exc


def classify_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str = "chat",
) -> AIIntegratorError:
    """Map an SDK exception from a status-code vendor into ``AIIntegratorError``."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc
    if isinstance(exc, AIIntegratorError):
        return _passthrough(exc, provider)

    status_code = extract_status_code(exc)
    if status_code is not None:
        kind, retryable = status_error_kind(status_code)
    else:
        transport = transport_error_kind(exc)
        kind = transport or ErrorType.UNKNOWN
        retryable = transport is not None

    return _build(
        exc,
        provider=provider,
        phase=phase,
        kind=kind,
        retryable=retryable,
        status_code=status_code,
    )


def classify_gemini_error(exc: BaseException, *, phase: str = "chat") -> AIIntegratorError:
    """Map a Gemini SDK exception into ``AIIntegratorError``.

    Message substrings are checked first for the cases the status code gets
    wrong, then the structured status, then the remaining substrings. Anything
    unrecognized falls back to ``unknown_error``, which is never retried.
    """
    provider = "gemini"
    if isinstance(exc, asyncio.CancelledError):
        raise exc
    if isinstance(exc, AIIntegratorError):
        return _passthrough(exc, provider)

    text = str(exc).lower()
    status_code = extract_status_code(exc)

    kind: ErrorType
    retryable: bool
    if "api key" in text or "api_key" in text:
        kind, retryable = ErrorType.AUTHENTICATION, False
        status_code = status_code if status_code in (401, 403) else 401
    elif "quota" in text or "rate limit" in text or "resource_exhausted" in text:
        kind, retryable = ErrorType.RATE_LIMIT, True
        status_code = 429
    elif status_code is not None:
        kind, retryable = status_error_kind(status_code)
    elif (transport := transport_error_kind(exc)) is not None:
        kind, retryable = transport, True
    elif "invalid" in text:
        kind, retryable = ErrorType.INVALID_REQUEST, False
        status_code = 400
    elif "timeout" in text or "deadline" in text:
        kind, retryable = ErrorType.TIMEOUT, True
    elif "network" in text or "fetch" in text or "connection" in text:
        kind, retryable = ErrorType.NETWORK, True
    else:
        kind, retryable = ErrorType.UNKNOWN, False

    return _build(
        exc,
        provider=provider,
        phase=phase,
        kind=kind,
        retryable=retryable,
        status_code=status_code,
    )


def sdk_missing_error(provider: str, package: str, exc: BaseException) -> AIIntegratorError:
    """Error for an SDK that cannot be imported; retrying will not help."""
    label = _PROVIDER_LABELS.get(provider, provider)
    return AIIntegratorError(
        ErrorType.API_ERROR,
        f"{label} SDK not found: {package} package not installed",
        provider=provider,
        retryable=False,
        original_error=exc,
        hint=f"pip install {package}",
    )


def sdk_init_error(provider: str, exc: Exception) -> AIIntegratorError:
    """Error for an SDK client whose constructor rejected its options."""
    label = _PROVIDER_LABELS.get(provider, provider)
    return AIIntegratorError(
        ErrorType.API_ERROR,
        f"{label} client initialization failed: {exc}",
        provider=provider,
        retryable=False,
        original_error=exc,
        hint="Check the provider's base_url, organization and api_key settings.",
    )
