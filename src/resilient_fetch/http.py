"""HTTP reads with retry and a per-attempt deadline.

Thin ``httpx`` wrappers for REST backends (PostgREST/Supabase style
``GET`` endpoints). Every attempt issues a fresh request under its own
deadline; non-2xx responses raise ``httpx.HTTPStatusError`` and are retried
like any other failure. Unspecified knobs come from
:class:`~resilient_fetch.core.settings.ResilienceSettings`.

Example:
    >>> from resilient_fetch.http import fetch_json
    >>> rows = await fetch_json(
    ...     f"{base}/rest/v1/test_questions",
    ...     params={"test_id": f"eq.{test_id}", "order": "position.asc"},
    ...     headers={"apikey": key},
    ...     timeout_ms=8000,
    ... )
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import httpx

from resilient_fetch.core.logging import get_logger
from resilient_fetch.core.settings import ResilienceSettings, get_settings
from resilient_fetch.execution.compose import retry_with_timeout

logger = get_logger(__name__)


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the caller's client untouched, or an owned one closed on exit."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(follow_redirects=True) as owned:
        yield owned


async def fetch_response(
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    client: httpx.AsyncClient | None = None,
    max_attempts: int | None = None,
    retry_delay_ms: float | None = None,
    timeout_ms: float | None = None,
    settings: ResilienceSettings | None = None,
) -> httpx.Response:
    """``GET`` ``url`` until a 2xx response arrives or attempts run out.

    Timed-out requests are cancelled, since httpx requests support it.

    Raises:
        httpx.HTTPStatusError: Last attempt got a non-2xx response
        httpx.RequestError: Last attempt failed at the transport level
        OperationTimeoutError: Last attempt exceeded ``timeout_ms``
    """
    settings = settings or get_settings()
    attempts = max_attempts if max_attempts is not None else settings.max_attempts
    delay_ms = retry_delay_ms if retry_delay_ms is not None else settings.initial_delay_ms
    deadline_ms = timeout_ms if timeout_ms is not None else settings.timeout_ms

    async with _client_scope(client) as http:

        async def request() -> httpx.Response:
            started = time.perf_counter()
            response = await http.get(url, params=params, headers=headers)
            logger.debug(
                "http.response",
                url=url,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            response.raise_for_status()
            return response

        response = await retry_with_timeout(
            request,
            attempts,
            delay_ms,
            deadline_ms,
            message=f"GET {url} timed out after {deadline_ms:g}ms",
            jitter_ms=settings.jitter_ms,
            cancel_on_timeout=True,
            operation_name="http.get",
        )
        # Read the body while an owned client is still open.
        await response.aread()

    logger.info("http.fetch", url=url, status=response.status_code)
    return response


async def fetch_json(url: str, **kwargs: Any) -> Any:
    """:func:`fetch_response` decoded as JSON."""
    response = await fetch_response(url, **kwargs)
    return response.json()


async def fetch_text(url: str, **kwargs: Any) -> str:
    """:func:`fetch_response` decoded as text."""
    response = await fetch_response(url, **kwargs)
    return response.text


def parse_header(raw: str) -> tuple[str, str]:
    """Split ``"Name: value"`` into a header pair.

    Raises:
        ValueError: If there is no colon or the name is empty.
    """
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise ValueError(f"Expected 'Name: value', got {raw!r}")
    return name.strip(), value.strip()


__all__ = ["fetch_response", "fetch_json", "fetch_text", "parse_header"]
