"""Deadline races for in-flight operations.

An operation that is already running is raced against a one-shot timer; the
first to settle decides the outcome:

- operation settles first: its value is returned, or its exception re-raised
  unchanged, and the timer is released;
- timer fires first: :class:`OperationTimeoutError` carrying the caller's
  message is raised.

The loser is discarded, not cancelled. An operation with no cancellation of its
own keeps running in the background and its eventual result is dropped. Pass
``cancel_on_timeout=True`` to cancel it instead.

Architecture:
    ::

        Async:
        ┌────────────────────────────────────────────────────────────┐
        │ await with_timeout(fetch_tests(), 8000, "fetch timed out") │
        │   task = ensure_future(awaitable)                          │
        │   asyncio.wait({task}, timeout=8.0)   ← timer handle freed │
        │                                         on both branches   │
        └────────────────────────────────────────────────────────────┘

        Sync:
        ┌────────────────────────────────────────────────────────────┐
        │ with_timeout_sync(future, 8000)   concurrent.futures.wait  │
        │ run_with_timeout(func, 8000)      one worker thread,       │
        │                                   abandoned on timeout     │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> result = await with_timeout(client.get(url), 10000, "Test metadata fetch timed out")

    >>> @timeout(5000)
    ... async def load_profile(user_id):
    ...     return await fetch_json(profile_url(user_id))

Tags:
    timeout, deadline, race, resilience, resilient-fetch
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

from resilient_fetch.core.errors import ConfigurationError, OperationTimeoutError
from resilient_fetch.core.logging import get_logger

T = TypeVar("T")
P = ParamSpec("P")

DEFAULT_TIMEOUT_MESSAGE = "Operation timed out"

logger = get_logger(__name__)


def validate_timeout(timeout_ms: float) -> None:
    if timeout_ms <= 0:
        raise ConfigurationError(
            f"timeout_ms must be positive, got {timeout_ms}"
        ).with_context(timeout_ms=timeout_ms)


def _expired(message: str, timeout_ms: float, started: float) -> OperationTimeoutError:
    elapsed_ms = (time.monotonic() - started) * 1000
    logger.warning(
        "timeout.expired",
        message=message,
        timeout_ms=timeout_ms,
        elapsed_ms=round(elapsed_ms, 2),
    )
    return OperationTimeoutError(message, timeout_ms=timeout_ms, elapsed_ms=elapsed_ms)


def _discard_outcome(task: asyncio.Future[Any]) -> None:
    """Consume the outcome of an operation that lost its race."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(
            "timeout.abandoned_failed",
            error_type=type(exc).__name__,
            error=str(exc),
        )


async def with_timeout(
    operation: Awaitable[T],
    timeout_ms: float,
    message: str = DEFAULT_TIMEOUT_MESSAGE,
    *,
    cancel_on_timeout: bool = False,
) -> T:
    """Race an in-flight awaitable against a deadline.

    Args:
        operation: Coroutine, task or future; coroutines are scheduled at once
        timeout_ms: Deadline in milliseconds (> 0)
        message: Text of the :class:`OperationTimeoutError` on expiry
        cancel_on_timeout: Cancel the operation instead of abandoning it

    Returns:
        The operation's result if it settles first.

    Raises:
        OperationTimeoutError: If the deadline elapses first
        ConfigurationError: If ``timeout_ms`` is not positive
        Exception: Whatever the operation raised, unchanged
    """
    try:
        validate_timeout(timeout_ms)
    except ConfigurationError:
        if inspect.iscoroutine(operation):
            operation.close()
        raise
    task = asyncio.ensure_future(operation)
    started = time.monotonic()

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000.0)
    except asyncio.CancelledError:
        task.add_done_callback(_discard_outcome)
        if cancel_on_timeout:
            task.cancel()
        raise

    if task in done:
        return task.result()

    task.add_done_callback(_discard_outcome)
    if cancel_on_timeout:
        task.cancel()
    raise _expired(message, timeout_ms, started)


def with_timeout_sync(
    future: concurrent.futures.Future[T],
    timeout_ms: float,
    message: str = DEFAULT_TIMEOUT_MESSAGE,
    *,
    cancel_on_timeout: bool = False,
) -> T:
    """Blocking twin of :func:`with_timeout` for a ``concurrent.futures.Future``.

    A future whose work has already started cannot be cancelled;
    ``cancel_on_timeout`` only helps for futures still queued.
    """
    validate_timeout(timeout_ms)
    started = time.monotonic()
    done, _ = concurrent.futures.wait([future], timeout=timeout_ms / 1000.0)
    if future in done:
        return future.result()
    if cancel_on_timeout:
        future.cancel()
    raise _expired(message, timeout_ms, started)


def run_with_timeout(
    func: Callable[..., T],
    timeout_ms: float,
    message: str = DEFAULT_TIMEOUT_MESSAGE,
    args: tuple[Any, ...] | None = None,
    kwargs: dict[str, Any] | None = None,
) -> T:
    """Run a callable in a worker thread and race it against a deadline.

    On timeout the worker is abandoned rather than joined, so the caller
    regains control at the deadline; the thread finishes on its own.

    Raises:
        OperationTimeoutError: If execution exceeds the deadline
        Exception: Any exception raised by func
    """
    validate_timeout(timeout_ms)
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix="resilient-fetch"
    )
    try:
        future = executor.submit(func, *(args or ()), **(kwargs or {}))
        return with_timeout_sync(future, timeout_ms, message)
    finally:
        executor.shutdown(wait=False)


def timeout(
    timeout_ms: float,
    message: str | None = None,
    *,
    cancel_on_timeout: bool = False,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator enforcing a deadline on each call of a sync or async function.

    Sync functions run in a worker thread (see :func:`run_with_timeout`).

    Example:
        >>> @timeout(30000)
        ... def render_report(rows):
        ...     return heavy_computation(rows)
    """
    validate_timeout(timeout_ms)

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        text = message or f"{func.__name__} timed out after {timeout_ms:g}ms"

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                return await with_timeout(
                    func(*args, **kwargs), timeout_ms, text,
                    cancel_on_timeout=cancel_on_timeout,
                )
            return async_wrapper  # type: ignore
        else:
            @functools.wraps(func)
            def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                return run_with_timeout(func, timeout_ms, text, args=args, kwargs=kwargs)
            return sync_wrapper

    return decorator


__all__ = [
    "DEFAULT_TIMEOUT_MESSAGE",
    "validate_timeout",
    "with_timeout",
    "with_timeout_sync",
    "run_with_timeout",
    "timeout",
]
