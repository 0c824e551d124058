"""Deferred helpers for ChainTest.

The queueing engine only needs a small promise contract: create a pending
unit of work, settle it once, combine several, and bound one by a timeout.
These helpers provide that contract on top of asyncio.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Iterable

from chaintest.diagnostics import TimeoutError as ChainTimeoutError


def is_async_callable(func: Any) -> bool:
    """Check if a function is async (coroutine function or has __call__ that is async)."""
    if inspect.iscoroutinefunction(func):
        return True

    # Check for async __call__ (async callable objects)
    if hasattr(func, "__call__"):
        return inspect.iscoroutinefunction(func.__call__)

    return False


def is_promise_like(value: Any) -> bool:
    """Whether ``value`` is something that settles later (future, task, coroutine)."""
    return inspect.isawaitable(value)


def create_deferred() -> asyncio.Future[Any]:
    """Create a pending future on the running loop."""
    return asyncio.get_running_loop().create_future()


def resolved(value: Any = None) -> asyncio.Future[Any]:
    """Create a future that is already resolved with ``value``."""
    future = create_deferred()
    future.set_result(value)
    return future


def ensure_future(awaitable: Awaitable[Any]) -> asyncio.Future[Any]:
    """Wrap an awaitable into a future that starts running now.

    Exceptions stored on the future are marked as retrieved, so a dependency
    that is never awaited (for example because its test was stopped) does not
    produce "exception was never retrieved" noise.
    """
    future = asyncio.ensure_future(awaitable)
    future.add_done_callback(_consume_exception)
    return future


async def gather_all(futures: Iterable[asyncio.Future[Any]]) -> list[Any]:
    """Wait for every future to resolve successfully.

    The first rejection propagates. Futures are shielded, so cancelling the
    wait (on timeout) leaves the underlying work untouched.
    """
    return list(await asyncio.gather(*(asyncio.shield(f) for f in futures)))


async def with_timeout(
    awaitable: Awaitable[Any],
    timeout_seconds: float | None,
    message: str | None = None,
) -> Any:
    """Await ``awaitable``, failing with ChainTest's TimeoutError after the deadline.

    A timeout of 0 or None disables the deadline. Only an expired deadline is
    translated; a TimeoutError raised by ``awaitable`` itself propagates as is.
    """
    if not timeout_seconds:
        return await awaitable
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if task not in done:
        task.cancel()
        raise ChainTimeoutError(timeout_seconds, message)
    return task.result()


def bounded(
    future: asyncio.Future[Any],
    timeout_seconds: float | None,
    message: str | None = None,
) -> asyncio.Future[Any]:
    """Return a future that mirrors ``future`` but rejects after the deadline.

    The original future is shielded: it is ignored after the deadline, not
    cancelled.
    """
    if not timeout_seconds:
        return future
    return ensure_future(with_timeout(asyncio.shield(future), timeout_seconds, message))


def _consume_exception(future: asyncio.Future[Any]) -> None:
    if not future.cancelled():
        future.exception()
