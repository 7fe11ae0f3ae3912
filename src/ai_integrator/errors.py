"""Error taxonomy for ai-integrator.

Every failure that crosses a provider boundary is an ``AIIntegratorError`` with
a definite ``kind`` and ``retryable`` flag, so the client can decide between
retrying in place, falling back, or giving up.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class ErrorType(str, Enum):
    """Closed set of error kinds shared by all providers."""

    AUTHENTICATION = "authentication_error"
    RATE_LIMIT = "rate_limit_error"
    INVALID_REQUEST = "invalid_request_error"
    API_ERROR = "api_error"
    TIMEOUT = "timeout_error"
    NETWORK = "network_error"
    UNKNOWN = "unknown_error"


# api_error is only retryable for 5xx-class faults, so classifiers pass it explicitly.
_RETRYABLE_BY_DEFAULT: frozenset[ErrorType] = frozenset(
    {ErrorType.RATE_LIMIT, ErrorType.TIMEOUT, ErrorType.NETWORK}
)


class AIIntegratorError(Exception):
    """Structured failure carrier.

    Attributes:
        kind: One of ``ErrorType``.
        status_code: HTTP status when the upstream reported one.
        provider: Identifier of the provider that produced the failure.
        retryable: Whether re-attempting the same call may plausibly succeed.
        original_error: The raw exception that was classified, if any.
        hint: Optional remediation hint for humans.
        retry_after_s: Vendor-supplied Retry-After delay, if any.
    """

    def __init__(
        self,
        kind: ErrorType | str,
        message: str,
        *,
        status_code: int | None = None,
        provider: str | None = None,
        retryable: bool | None = None,
        original_error: BaseException | None = None,
        hint: str | None = None,
        retry_after_s: float | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = ErrorType(kind)
        self.message = message
        self.status_code = status_code
        self.provider = provider
        self.retryable = (
            self.kind in _RETRYABLE_BY_DEFAULT if retryable is None else retryable
        )
        self.original_error = original_error
        self.hint = hint
        self.retry_after_s = retry_after_s

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r}, "
            f"status_code={self.status_code!r}, provider={self.provider!r}, "
            f"retryable={self.retryable!r})"
        )


class ConfigurationError(AIIntegratorError):
    """Client or provider configuration is invalid (unknown provider, missing key)."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(
            ErrorType.INVALID_REQUEST,
            message,
            provider=provider,
            retryable=False,
            hint=hint,
        )


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
