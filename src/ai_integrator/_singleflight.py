"""Async single-flight helpers.

Used to coordinate concurrent first use of a lazily created resource so only
one coroutine performs the work, while others await the same Future.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

# Resolves a pending future whose creator was cancelled; waiters retry.
_ABANDONED: Any = object()


def consume_future_exception(fut: asyncio.Future[Any]) -> None:
    """Avoid 'Future exception was never retrieved' for coordination futures."""
    try:
        _ = fut.exception()
    except asyncio.CancelledError:
        return


class SingleFlightCell(Generic[T]):
    """Single-assignment cell filled by at most one in-flight computation.

    - If filled, ``get`` returns the value immediately.
    - If a computation is in flight, ``get`` awaits the same Future.
    - Otherwise the caller becomes the creator and runs *work*.

    A failed computation leaves the cell empty so a later call can try again.
    If the creator is cancelled, waiters are not: one of them takes over the
    computation.
    No lock is needed: the check-and-set of ``_pending`` happens without an
    intervening await.
    """

    def __init__(self) -> None:
        self._value: T | None = None
        self._filled = False
        self._pending: asyncio.Future[T] | None = None

    @property
    def filled(self) -> bool:
        return self._filled

    def set(self, value: T) -> None:
        """Fill the cell directly (used for injected clients)."""
        self._value = value
        self._filled = True

    def peek(self) -> T | None:
        return self._value if self._filled else None

    def clear(self) -> T | None:
        """Empty the cell and return the previous value, if any."""
        value = self.peek()
        self._value = None
        self._filled = False
        return value

    async def get(self, work: Callable[[], Awaitable[T]]) -> T:
        while True:
            if self._filled:
                return self._value  # type: ignore[return-value]

            fut = self._pending
            if fut is None:
                return await self._create(work)
            value = await asyncio.shield(fut)
            if value is not _ABANDONED:
                return value

    async def _create(self, work: Callable[[], Awaitable[T]]) -> T:
        fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        fut.add_done_callback(consume_future_exception)
        self._pending = fut
        try:
            value = await work()
        except asyncio.CancelledError:
            self._pending = None
            fut.set_result(_ABANDONED)
            raise
        except Exception as e:
            fut.set_exception(e)
            raise
        else:
            self.set(value)
            fut.set_result(value)
            return value
        finally:
            if self._pending is fut:
                self._pending = None
