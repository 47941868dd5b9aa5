"""Core primitives: errors, logging and settings."""

from resilient_fetch.core.errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    OperationTimeoutError,
    ResilienceError,
)
from resilient_fetch.core.logging import LogContext, configure_logging, get_logger
from resilient_fetch.core.settings import ResilienceSettings, get_settings

__all__ = [
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "OperationTimeoutError",
    "ResilienceError",
    "LogContext",
    "configure_logging",
    "get_logger",
    "ResilienceSettings",
    "get_settings",
]
