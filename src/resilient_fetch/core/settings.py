"""
Centralized settings for resilient-fetch.

All fields can be set via ``RESILIENT_FETCH_*`` environment variables (e.g.
``RESILIENT_FETCH_TIMEOUT_MS=8000``) or a ``.env`` file. The combinators take
explicit arguments; settings only supply defaults to the HTTP helpers and the
CLI.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResilienceSettings(BaseSettings):
    """Defaults for retry, timeout and logging."""

    model_config = SettingsConfigDict(
        env_prefix="RESILIENT_FETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Retry ────────────────────────────────────────────────────
    max_attempts: int = Field(default=3, description="Total attempts per call")
    initial_delay_ms: float = Field(default=1000.0, description="Delay after the first failure")
    jitter_ms: float = Field(default=1000.0, description="Upper bound of random jitter")

    # ── Timeout ──────────────────────────────────────────────────
    timeout_ms: float = Field(default=15000.0, description="Per-attempt deadline")
    timeout_message: str = Field(default="Operation timed out")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="auto, json or console")
    service_name: str = Field(default="resilient-fetch")

    @field_validator("max_attempts")
    @classmethod
    def _check_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"max_attempts must be at least 1, got {value}")
        return value

    @field_validator("initial_delay_ms", "jitter_ms")
    @classmethod
    def _check_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError(f"delay must be non-negative, got {value}")
        return value

    @field_validator("timeout_ms")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"timeout_ms must be positive, got {value}")
        return value

    @field_validator("log_format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("auto", "json", "console"):
            raise ValueError(f"log_format must be auto, json or console, got {value!r}")
        return value

    @property
    def json_logs(self) -> bool | None:
        """``None`` lets :func:`configure_logging` auto-detect."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, ResilienceSettings] = {}


def get_settings(*, _force_reload: bool = False) -> ResilienceSettings:
    """Load, validate, and cache a :class:`ResilienceSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = ResilienceSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    """Drop the cached settings (used by tests and the CLI)."""
    _settings_cache.clear()


__all__ = ["ResilienceSettings", "get_settings", "clear_settings_cache"]
