"""Resilient execution: retry, deadlines and their composition.

ARCHITECTURE
────────────
::

    retry(operation)                      sequential attempts
      └── BackoffSchedule                 initial * 2^(n-1) + jitter
    with_timeout(awaitable)               race against a one-shot timer
    retry_with_timeout(factory)           fresh deadline per attempt
    InvocationTrace                       timed, named steps

Every combinator has a blocking twin for thread-based callers.
"""

from resilient_fetch.execution.backoff import BackoffSchedule
from resilient_fetch.execution.compose import retry_with_timeout, retry_with_timeout_sync
from resilient_fetch.execution.retry import (
    RetryContext,
    RetryState,
    retry,
    retry_sync,
    with_retry,
)
from resilient_fetch.execution.timeout import (
    run_with_timeout,
    timeout,
    with_timeout,
    with_timeout_sync,
)
from resilient_fetch.execution.trace import InvocationTrace, TraceStep

__all__ = [
    "BackoffSchedule",
    "RetryContext",
    "RetryState",
    "retry",
    "retry_sync",
    "with_retry",
    "with_timeout",
    "with_timeout_sync",
    "run_with_timeout",
    "timeout",
    "retry_with_timeout",
    "retry_with_timeout_sync",
    "InvocationTrace",
    "TraceStep",
]
