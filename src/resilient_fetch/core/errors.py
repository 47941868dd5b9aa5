"""
Structured error types for resilient-fetch.

The combinators in :mod:`resilient_fetch.execution` never wrap the failures of
the operations they guard: an attempt failure reaches the caller exactly as the
operation raised it. The types here cover the two failures the helpers
synthesize themselves.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                    ResilienceError                        │
        │        (category, retryable, context, cause)              │
        ├──────────────────────────────────────────────────────────┤
        │                                                           │
        │  OperationTimeoutError          ConfigurationError        │
        │  (NETWORK, retryable)           (CONFIG, not retryable)   │
        │  + builtin TimeoutError         + builtin ValueError      │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> err = OperationTimeoutError("Test metadata fetch timed out", timeout_ms=8000)
    >>> err.retryable
    True
    >>> isinstance(err, TimeoutError)
    True

    >>> ConfigurationError("max_attempts must be at least 1").category
    <ErrorCategory.CONFIG: 'CONFIG'>

Tags:
    error-handling, exception-hierarchy, timeout, retry, resilient-fetch
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"           # Connection, timeout, DNS
    SOURCE = "SOURCE"             # Upstream API returned an error
    CONFIG = "CONFIG"             # Invalid combinator settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error for logging.

    Attributes:
        operation: Name of the guarded operation
        attempt: 1-based attempt number the error belongs to
        url: URL that was being fetched, if any
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    attempt: int | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "attempt", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ResilienceError(Exception):
    """
    Base exception for errors raised by resilient-fetch itself.

    Subclasses set ``default_category`` and ``default_retryable``; both can be
    overridden per instance.

    Attributes:
        message: Human-readable description
        category: ErrorCategory for routing
        retryable: Whether retrying the guarded operation may help
        context: ErrorContext with structured metadata
        cause: Underlying exception, if any
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ResilienceError:
        """Add context fields and return self for chaining.

        Unknown keys go into ``context.metadata``.
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class OperationTimeoutError(ResilienceError, TimeoutError):
    """
    Raised when a deadline elapses before the guarded operation settles.

    Inherits from built-in TimeoutError so ``except TimeoutError`` keeps
    working. ``str(err)`` is exactly the caller-supplied message.

    Attributes:
        timeout_ms: The deadline that was exceeded
        elapsed_ms: How long the race ran before the timer won
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True

    def __init__(
        self,
        message: str = "Operation timed out",
        *,
        timeout_ms: float | None = None,
        elapsed_ms: float | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(message, context=context)
        self.timeout_ms = timeout_ms
        self.elapsed_ms = elapsed_ms

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.timeout_ms is not None:
            result["timeout_ms"] = self.timeout_ms
        if self.elapsed_ms is not None:
            result["elapsed_ms"] = round(self.elapsed_ms, 2)
        return result


class ConfigurationError(ResilienceError, ValueError):
    """Raised immediately when a combinator is configured with unusable values."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ResilienceError",
    "OperationTimeoutError",
    "ConfigurationError",
]
