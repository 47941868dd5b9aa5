"""Retry composed with a fresh per-attempt deadline.

Each attempt builds a new operation from the factory and races it against its
own timer before the retry loop sees the outcome, so a timeout is just another
failed attempt and consumes one slot::

    attempt 1: with_timeout(factory(), timeout_ms) ── fail ──▶ wait backoff(1)
    attempt 2: with_timeout(factory(), timeout_ms) ── fail ──▶ wait backoff(2)
    attempt 3: with_timeout(factory(), timeout_ms) ── fail ──▶ raise last error
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from resilient_fetch.execution.backoff import DEFAULT_JITTER_MS
from resilient_fetch.execution.retry import (
    DEFAULT_MAX_ATTEMPTS,
    OnRetry,
    build_schedule,
    retry,
    retry_sync,
)
from resilient_fetch.execution.timeout import (
    DEFAULT_TIMEOUT_MESSAGE,
    run_with_timeout,
    validate_timeout,
    with_timeout,
)

T = TypeVar("T")

DEFAULT_RETRY_DELAY_MS = 1000.0
DEFAULT_ATTEMPT_TIMEOUT_MS = 15000.0


async def retry_with_timeout(
    operation_factory: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    retry_delay_ms: float = DEFAULT_RETRY_DELAY_MS,
    timeout_ms: float = DEFAULT_ATTEMPT_TIMEOUT_MS,
    *,
    message: str = DEFAULT_TIMEOUT_MESSAGE,
    jitter_ms: float = DEFAULT_JITTER_MS,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: OnRetry | None = None,
    cancel_on_timeout: bool = False,
    operation_name: str | None = None,
) -> T:
    """Retry ``operation_factory`` with a deadline on every attempt.

    Configuration is validated before the first attempt.

    Raises:
        ConfigurationError: On unusable attempt, delay or timeout values
        OperationTimeoutError: If the final attempt timed out
        Exception: Whatever the final attempt raised otherwise
    """
    build_schedule(max_attempts, retry_delay_ms, jitter_ms)
    validate_timeout(timeout_ms)

    async def attempt() -> T:
        return await with_timeout(
            operation_factory(), timeout_ms, message,
            cancel_on_timeout=cancel_on_timeout,
        )

    return await retry(
        attempt,
        max_attempts,
        retry_delay_ms,
        jitter_ms=jitter_ms,
        retry_on=retry_on,
        on_retry=on_retry,
        operation_name=operation_name or getattr(operation_factory, "__name__", None),
    )


def retry_with_timeout_sync(
    func: Callable[..., T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    retry_delay_ms: float = DEFAULT_RETRY_DELAY_MS,
    timeout_ms: float = DEFAULT_ATTEMPT_TIMEOUT_MS,
    *,
    message: str = DEFAULT_TIMEOUT_MESSAGE,
    jitter_ms: float = DEFAULT_JITTER_MS,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: OnRetry | None = None,
    args: tuple[Any, ...] | None = None,
    kwargs: dict[str, Any] | None = None,
) -> T:
    """Blocking twin of :func:`retry_with_timeout`.

    Every attempt runs ``func`` in its own worker thread; a timed-out worker
    is abandoned and the next attempt starts a new one.
    """
    build_schedule(max_attempts, retry_delay_ms, jitter_ms)
    validate_timeout(timeout_ms)

    def attempt() -> T:
        return run_with_timeout(func, timeout_ms, message, args=args, kwargs=kwargs)

    return retry_sync(
        attempt,
        max_attempts,
        retry_delay_ms,
        jitter_ms=jitter_ms,
        retry_on=retry_on,
        on_retry=on_retry,
        operation_name=getattr(func, "__name__", None),
    )


__all__ = [
    "DEFAULT_RETRY_DELAY_MS",
    "DEFAULT_ATTEMPT_TIMEOUT_MS",
    "retry_with_timeout",
    "retry_with_timeout_sync",
]
