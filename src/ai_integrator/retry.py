"""Async retry with exponential backoff, and a timeout race around it.

Retry decisions come from the structured ``retryable`` flag on
``AIIntegratorError``; other exceptions are judged by a caller-supplied
predicate.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import random
from typing import TYPE_CHECKING, Any, TypeVar

from ai_integrator._singleflight import consume_future_exception
from ai_integrator.errors import AIIntegratorError, ErrorType

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

# Abandoned timed-out operations; held so they are not garbage collected mid-flight.
_orphaned_tasks: set[asyncio.Task[Any]] = set()


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with exponential backoff and optional jitter."""

    max_retries: int = 3
    initial_delay_s: float = 1.0
    max_delay_s: float = 60.0
    backoff_multiplier: float = 2.0
    jitter: bool = False  # "full jitter" when enabled

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_retries < 0:
            raise ValueError("RetryPolicy.max_retries must be >= 0")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


def _always_retry(exc: BaseException) -> bool:
    _ = exc
    return True


def compute_backoff_delay(policy: RetryPolicy, *, retry_index: int) -> float:
    """Delay before retry number *retry_index* (1 for the first retry)."""
    base = policy.initial_delay_s * (
        policy.backoff_multiplier ** max(0, retry_index - 1)
    )
    base = min(policy.max_delay_s, base)
    if base <= 0:
        return 0.0
    if not policy.jitter:
        return base
    # Full jitter: random in [0, base] to avoid thundering herd.
    return random.random() * base  # noqa: S311


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    should_retry: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run an async factory with bounded retries.

    ``AIIntegratorError`` is retried iff its ``retryable`` flag is set; any
    other exception is retried when *should_retry* says so (default: always).
    On exhaustion the last error is re-raised unchanged.
    """
    policy = policy or RetryPolicy()
    predicate = should_retry or _always_retry
    last_exc: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await factory()
        except Exception as exc:
            last_exc = exc
            if isinstance(exc, AIIntegratorError):
                retryable = exc.retryable
            else:
                retryable = predicate(exc)
            if not retryable or attempt >= policy.max_attempts:
                raise

            delay = compute_backoff_delay(policy, retry_index=attempt)
            retry_after = (
                exc.retry_after_s if isinstance(exc, AIIntegratorError) else None
            )
            if retry_after is not None:
                delay = min(max(delay, retry_after), policy.max_delay_s)

            if delay > 0:
                await sleep(delay)

    # Unreachable: the loop always returns or raises.
    if last_exc is None:  # pragma: no cover
        raise RuntimeError("retry_async exhausted without an exception")
    raise last_exc


async def retry_with_timeout(
    factory: Callable[[], Awaitable[T]],
    timeout_s: float,
    *,
    policy: RetryPolicy | None = None,
    should_retry: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Race ``retry_async`` against a timer.

    When the timer wins, a fresh retryable ``timeout_error`` is raised. The
    in-flight operation is abandoned rather than cancelled, so the upstream
    request may keep running; its eventual outcome is discarded.
    """
    task = asyncio.ensure_future(
        retry_async(factory, policy=policy, should_retry=should_retry, sleep=sleep)
    )
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_s)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if task in done:
        return task.result()

    _orphaned_tasks.add(task)
    task.add_done_callback(_orphaned_tasks.discard)
    task.add_done_callback(consume_future_exception)
    raise AIIntegratorError(
        ErrorType.TIMEOUT,
        f"Operation timed out after {timeout_s}s",
        retryable=True,
    )
