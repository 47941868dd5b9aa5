"""Tests for HTTP reads with retry and deadlines."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from resilient_fetch.core.errors import ConfigurationError, OperationTimeoutError
from resilient_fetch.core.settings import ResilienceSettings
from resilient_fetch.http import fetch_json, fetch_response, fetch_text, parse_header

BASE = "https://project.supabase.co/rest/v1"


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class SequenceHandler:
    """Serve the given responses in order, recording each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(item, Exception):
            raise item
        # A fresh response per request; httpx binds each one to its request.
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)


@pytest.fixture
def no_backoff():
    with patch("resilient_fetch.execution.retry._sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


class TestFetchResponse:
    """Retry behaviour over a mock transport."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, no_backoff):
        handler = SequenceHandler(httpx.Response(200, json=[{"id": 1}]))

        async with _client(handler) as client:
            response = await fetch_response(f"{BASE}/tests", client=client)

        assert response.status_code == 200
        assert len(handler.requests) == 1
        no_backoff.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self, no_backoff):
        handler = SequenceHandler(
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, text="ok"),
        )

        async with _client(handler) as client:
            response = await fetch_response(f"{BASE}/tests", client=client, max_attempts=3)

        assert response.text == "ok"
        assert len(handler.requests) == 3
        assert no_backoff.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_status_error(self, no_backoff):
        handler = SequenceHandler(httpx.Response(500))

        async with _client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError) as exc_info:
                await fetch_response(f"{BASE}/tests", client=client, max_attempts=2)

        assert exc_info.value.response.status_code == 500
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, no_backoff):
        handler = SequenceHandler(
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json={"ok": True}),
        )

        async with _client(handler) as client:
            response = await fetch_response(f"{BASE}/health", client=client)

        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_params_and_headers_sent(self, no_backoff):
        handler = SequenceHandler(httpx.Response(200, json=[]))

        async with _client(handler) as client:
            await fetch_response(
                f"{BASE}/test_questions",
                params={"test_id": "eq.7", "order": "position.asc"},
                headers={"apikey": "anon"},
                client=client,
            )

        request = handler.requests[0]
        assert request.url.params["test_id"] == "eq.7"
        assert request.url.params["order"] == "position.asc"
        assert request.headers["apikey"] == "anon"

    @pytest.mark.asyncio
    async def test_per_attempt_timeout(self, no_backoff):
        calls = 0

        async def slow_handler(request):
            nonlocal calls
            calls += 1
            await asyncio.sleep(1)
            return httpx.Response(200)

        async with _client(slow_handler) as client:
            with pytest.raises(OperationTimeoutError, match="timed out after 20ms"):
                await fetch_response(f"{BASE}/tests", client=client, max_attempts=2, timeout_ms=20)

        assert calls == 2

    @pytest.mark.asyncio
    async def test_settings_supply_defaults(self, no_backoff):
        handler = SequenceHandler(httpx.Response(500))
        settings = ResilienceSettings(max_attempts=4, jitter_ms=0, initial_delay_ms=10)

        async with _client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await fetch_response(f"{BASE}/tests", client=client, settings=settings)

        assert len(handler.requests) == 4
        assert [c.args[0] for c in no_backoff.await_args_list] == [0.01, 0.02, 0.04]

    @pytest.mark.asyncio
    async def test_invalid_attempts(self):
        handler = SequenceHandler(httpx.Response(200))

        async with _client(handler) as client:
            with pytest.raises(ConfigurationError):
                await fetch_response(f"{BASE}/tests", client=client, max_attempts=0)

        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_owned_client(self, no_backoff):
        """Without a client one is created per call."""
        handler = SequenceHandler(httpx.Response(200, text="owned"))
        transport = httpx.MockTransport(handler)
        real_client = httpx.AsyncClient

        def factory(**kwargs):
            return real_client(transport=transport, **kwargs)

        with patch("resilient_fetch.http.httpx.AsyncClient", side_effect=factory):
            response = await fetch_response(f"{BASE}/tests")

        assert response.text == "owned"


class TestDecoders:
    @pytest.mark.asyncio
    async def test_fetch_json(self, no_backoff):
        handler = SequenceHandler(httpx.Response(200, json={"title": "Algebra"}))
        async with _client(handler) as client:
            assert await fetch_json(f"{BASE}/tests", client=client) == {"title": "Algebra"}

    @pytest.mark.asyncio
    async def test_fetch_text(self, no_backoff):
        handler = SequenceHandler(httpx.Response(200, text="plain"))
        async with _client(handler) as client:
            assert await fetch_text(f"{BASE}/tests", client=client) == "plain"


class TestParseHeader:
    def test_valid(self):
        assert parse_header("Authorization: Bearer abc") == ("Authorization", "Bearer abc")

    def test_value_with_colon(self):
        assert parse_header("X-Time: 12:30") == ("X-Time", "12:30")

    @pytest.mark.parametrize("raw", ["no-colon", ": value", "   : value"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError, match="Name: value"):
            parse_header(raw)
