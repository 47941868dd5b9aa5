"""
resilient-fetch - retry, backoff and deadlines for unreliable async calls.

Public API::

    from resilient_fetch import retry, with_timeout, retry_with_timeout

    rows = await retry_with_timeout(lambda: client.get_json(url), timeout_ms=8000)
"""

__version__ = "0.1.0"

from resilient_fetch.core.errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    OperationTimeoutError,
    ResilienceError,
)
from resilient_fetch.execution import (
    BackoffSchedule,
    InvocationTrace,
    RetryContext,
    RetryState,
    TraceStep,
    retry,
    retry_sync,
    retry_with_timeout,
    retry_with_timeout_sync,
    run_with_timeout,
    timeout,
    with_retry,
    with_timeout,
    with_timeout_sync,
)

__all__ = [
    "__version__",
    # Errors
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "OperationTimeoutError",
    "ResilienceError",
    # Combinators
    "retry",
    "retry_sync",
    "with_retry",
    "with_timeout",
    "with_timeout_sync",
    "run_with_timeout",
    "timeout",
    "retry_with_timeout",
    "retry_with_timeout_sync",
    # State
    "BackoffSchedule",
    "RetryContext",
    "RetryState",
    "InvocationTrace",
    "TraceStep",
]
