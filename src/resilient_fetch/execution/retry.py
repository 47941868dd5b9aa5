"""Bounded retry with exponential backoff and jitter.

Invokes an operation; on success returns at once, on failure waits out a
growing, jittered delay and tries again until ``max_attempts`` invocations
have failed, then re-raises the error from the final attempt.

State machine (one per call)::

    INIT ──▶ ATTEMPTING ──▶ SUCCESS
                 │  ▲
                 ▼  │ (attempts remain)
               WAITING
                 │
                 ▼ (attempts exhausted, or error not retryable)
               FAILED

Attempts are strictly sequential: attempt ``n + 1`` starts only after attempt
``n`` has settled and its delay has elapsed. Each call owns its own
:class:`RetryContext`, so concurrent calls share nothing.

Example:
    >>> from resilient_fetch.execution.retry import retry
    >>>
    >>> data = await retry(lambda: client.get_json("/rest/v1/tests"), max_attempts=3)

    Decorator form:

    >>> @with_retry(max_attempts=5, initial_delay_ms=200)
    ... async def load_questions(test_id):
    ...     return await fetch_json(f"{base}/test_questions?test_id=eq.{test_id}")
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from resilient_fetch.core.errors import ConfigurationError
from resilient_fetch.core.logging import get_logger
from resilient_fetch.execution.backoff import (
    DEFAULT_INITIAL_DELAY_MS,
    DEFAULT_JITTER_MS,
    BackoffSchedule,
)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3

logger = get_logger(__name__)

OnRetry = Callable[[int, Exception, float], None]


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class RetryState(str, Enum):
    """Lifecycle of a single retry call."""

    INIT = "init"
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCESS = "success"
    FAILED = "failed"


def build_schedule(
    max_attempts: int,
    initial_delay_ms: float,
    jitter_ms: float = DEFAULT_JITTER_MS,
) -> BackoffSchedule:
    """Validate retry parameters and return the matching schedule.

    Raises:
        ConfigurationError: On ``max_attempts < 1`` or a negative delay.
    """
    if max_attempts < 1:
        raise ConfigurationError(
            f"max_attempts must be at least 1, got {max_attempts}"
        ).with_context(max_attempts=max_attempts)
    if initial_delay_ms < 0:
        raise ConfigurationError(
            f"initial_delay_ms must be non-negative, got {initial_delay_ms}"
        ).with_context(initial_delay_ms=initial_delay_ms)
    if jitter_ms < 0:
        raise ConfigurationError(
            f"jitter_ms must be non-negative, got {jitter_ms}"
        ).with_context(jitter_ms=jitter_ms)
    return BackoffSchedule(initial_delay_ms=initial_delay_ms, jitter_ms=jitter_ms)


@dataclass
class RetryContext:
    """Per-call retry state and execution helpers.

    ``attempt`` counts failed attempts, starting at 0. ``calls`` counts
    invocations of the operation.

    Example:
        >>> ctx = RetryContext(max_attempts=3)
        >>> result = ctx.run(lambda: call_api())
        >>> ctx.state
        <RetryState.SUCCESS: 'success'>
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    schedule: BackoffSchedule = field(default_factory=BackoffSchedule)
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    on_retry: OnRetry | None = None
    operation_name: str = "operation"
    attempt: int = field(default=0, init=False)
    calls: int = field(default=0, init=False)
    state: RetryState = field(default=RetryState.INIT, init=False)
    last_error: Exception | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utcnow, init=False)
    errors: list[tuple[int, Exception, datetime]] = field(default_factory=list, init=False)
    delays: list[float] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            ).with_context(max_attempts=self.max_attempts)

    def begin_attempt(self) -> None:
        """Move to ATTEMPTING before invoking the operation."""
        self.state = RetryState.ATTEMPTING
        self.calls += 1

    def record_success(self) -> None:
        self.state = RetryState.SUCCESS
        if self.attempt:
            logger.info(
                "retry.succeeded",
                operation=self.operation_name,
                attempt=self.calls,
                max_attempts=self.max_attempts,
            )

    def record_failure(self, error: Exception) -> float | None:
        """Record a failed attempt.

        Returns:
            Delay in seconds before the next attempt, or ``None`` when the
            caller must re-raise ``error`` (attempts exhausted or the error
            type is not retried).
        """
        self.attempt += 1
        self.last_error = error
        self.errors.append((self.attempt, error, utcnow()))

        if not isinstance(error, self.retry_on):
            self.state = RetryState.FAILED
            logger.warning(
                "retry.not_retryable",
                operation=self.operation_name,
                attempt=self.attempt,
                error_type=type(error).__name__,
                error=str(error),
            )
            return None

        if self.attempt >= self.max_attempts:
            self.state = RetryState.FAILED
            logger.warning(
                "retry.attempt_failed",
                operation=self.operation_name,
                attempt=self.attempt,
                max_attempts=self.max_attempts,
                error_type=type(error).__name__,
                error=str(error),
            )
            logger.error(
                "retry.exhausted",
                operation=self.operation_name,
                attempts=self.attempt,
                elapsed_seconds=round(self.elapsed_seconds, 3),
                error_type=type(error).__name__,
                error=str(error),
            )
            return None

        delay = self.schedule.next_delay(self.attempt)
        self.state = RetryState.WAITING
        self.delays.append(delay)
        logger.warning(
            "retry.attempt_failed",
            operation=self.operation_name,
            attempt=self.attempt,
            max_attempts=self.max_attempts,
            error_type=type(error).__name__,
            error=str(error),
            delay_ms=round(delay * 1000, 1),
        )
        if self.on_retry:
            self.on_retry(self.attempt, error, delay)
        return delay

    @property
    def elapsed_seconds(self) -> float:
        """Total elapsed time since the context was created."""
        return (utcnow() - self.started_at).total_seconds()

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute a blocking function with retry logic.

        Raises:
            The exception from the final attempt if all attempts fail.
        """
        while True:
            self.begin_attempt()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                delay = self.record_failure(e)
                if delay is None:
                    raise
                time.sleep(delay)
            else:
                self.record_success()
                return result

    async def run_async(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Execute an async function with retry logic.

        ``asyncio.CancelledError`` is not an ``Exception`` and is never retried.

        Raises:
            The exception from the final attempt if all attempts fail.
        """
        while True:
            self.begin_attempt()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                delay = self.record_failure(e)
                if delay is None:
                    raise
                await _sleep(delay)
            else:
                self.record_success()
                return result


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


def _name_of(func: Callable[..., Any], operation_name: str | None) -> str:
    return operation_name or getattr(func, "__name__", None) or "operation"


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
    *,
    jitter_ms: float = DEFAULT_JITTER_MS,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: OnRetry | None = None,
    operation_name: str | None = None,
) -> T:
    """Invoke ``operation`` until it succeeds or ``max_attempts`` calls failed.

    Args:
        operation: Zero-argument callable returning an awaitable
        max_attempts: Total number of invocations allowed (>= 1)
        initial_delay_ms: Delay after the first failure; doubles each time
        jitter_ms: Upper bound of the uniform jitter added to every delay
        retry_on: Exception types that are retried; others propagate at once
        on_retry: Called as ``(attempt, error, delay_seconds)`` before each wait
        operation_name: Name used in log events

    Returns:
        The first successful result.

    Raises:
        ConfigurationError: If the parameters are unusable; nothing is invoked.
        Exception: The error raised by the final attempt.
    """
    schedule = build_schedule(max_attempts, initial_delay_ms, jitter_ms)
    ctx = RetryContext(
        max_attempts=max_attempts,
        schedule=schedule,
        retry_on=retry_on,
        on_retry=on_retry,
        operation_name=_name_of(operation, operation_name),
    )
    return await ctx.run_async(operation)


def retry_sync(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
    *,
    jitter_ms: float = DEFAULT_JITTER_MS,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: OnRetry | None = None,
    operation_name: str | None = None,
) -> T:
    """Blocking twin of :func:`retry`; waits with ``time.sleep``."""
    schedule = build_schedule(max_attempts, initial_delay_ms, jitter_ms)
    ctx = RetryContext(
        max_attempts=max_attempts,
        schedule=schedule,
        retry_on=retry_on,
        on_retry=on_retry,
        operation_name=_name_of(operation, operation_name),
    )
    return ctx.run(operation)


def with_retry(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
    *,
    jitter_ms: float = DEFAULT_JITTER_MS,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: OnRetry | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator factory adding retry logic to a sync or async function.

    Configuration is validated when the decorator is built; every call gets a
    fresh :class:`RetryContext`.

    Example:
        >>> @with_retry(max_attempts=3)
        ... def flaky_operation():
        ...     return call_api()
    """
    build_schedule(max_attempts, initial_delay_ms, jitter_ms)

    def make_context(func: Callable[..., Any]) -> RetryContext:
        return RetryContext(
            max_attempts=max_attempts,
            schedule=BackoffSchedule(initial_delay_ms=initial_delay_ms, jitter_ms=jitter_ms),
            retry_on=retry_on,
            on_retry=on_retry,
            operation_name=func.__name__,
        )

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                return await make_context(func).run_async(func, *args, **kwargs)
            return async_wrapper  # type: ignore[return-value]
        else:
            @functools.wraps(func)
            def sync_wrapper(*args: Any, **kwargs: Any) -> T:
                return make_context(func).run(func, *args, **kwargs)
            return sync_wrapper

    return decorator


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "RetryState",
    "RetryContext",
    "build_schedule",
    "retry",
    "retry_sync",
    "with_retry",
]
