"""
Shared pytest fixtures and configuration for resilient-fetch tests.

This module provides:
- Logging and settings isolation between tests
- Call-counting operation factories for retry tests
- A seeded random source for reproducible jitter
"""

import random
import sys
from pathlib import Path
from typing import Any, Generator

import pytest
import structlog

# Ensure the package is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from resilient_fetch.core.settings import clear_settings_cache


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """
    Strip RESILIENT_FETCH_* variables and reset cached state.

    CLI tests configure structlog against CliRunner streams; resetting after
    each test keeps later tests from writing to a closed stream.
    """
    import os

    for key in list(os.environ):
        if key.startswith("RESILIENT_FETCH_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(Path(__file__).parent)
    clear_settings_cache()
    structlog.reset_defaults()
    yield
    clear_settings_cache()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Operation Fixtures
# =============================================================================


class FlakyOperation:
    """Sync callable that fails ``failures`` times, then returns ``value``."""

    def __init__(self, failures: int, value: Any = "success", error: type[Exception] = ValueError):
        self.failures = failures
        self.value = value
        self.error = error
        self.calls = 0

    def __call__(self) -> Any:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return self.value


class AsyncFlakyOperation(FlakyOperation):
    """Async twin of FlakyOperation."""

    async def __call__(self) -> Any:  # type: ignore[override]
        return super().__call__()


@pytest.fixture
def flaky() -> type[FlakyOperation]:
    return FlakyOperation


@pytest.fixture
def async_flaky() -> type[AsyncFlakyOperation]:
    return AsyncFlakyOperation


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(1234)
