"""Unit tests for the feed HTTP utilities.

This module tests the HTTP handling layer defined in feed/_http.py.
The tests verify:

1. Helper Functions:
   - _parse_error_response: Extracting error info from various response formats
   - _raise_for_status: Mapping HTTP status codes to exception types
   - _calculate_backoff: Exponential backoff calculation for retries

2. AsyncHTTPClient:
   - Initialization and async context manager support
   - GET and POST requests, absolute URLs, query parameter filtering
   - Error handling and exception mapping
   - Retry logic with exponential backoff

Note: These tests use httpx's mock transport to avoid real network calls.
"""

import json

import httpx
import pytest

from feed._http import (
    DEFAULT_RETRY_BACKOFF_BASE,
    DEFAULT_RETRY_BACKOFF_MAX,
    RETRYABLE_STATUS_CODES,
    AsyncHTTPClient,
    _calculate_backoff,
    _parse_error_response,
    _raise_for_status,
)
from feed.exceptions import APIError, RequestTimeout, ServerError, UnreachableEndpoint


def mock_client(handler, **kwargs) -> AsyncHTTPClient:
    kwargs.setdefault("base_url", "http://localhost:8081")
    return AsyncHTTPClient(transport=httpx.MockTransport(handler), **kwargs)


# =============================================================================
# Helper Function Tests: _parse_error_response
# =============================================================================

class TestParseErrorResponse:
    """Tests for the _parse_error_response helper function.

    The feed backend answers errors as {"error": ..., "detail": ...}; the
    helper also copes with plain text bodies.
    """

    def test_parse_detail_string(self) -> None:
        response = httpx.Response(400, json={"detail": "Invalid request", "type": "bad"})
        message, error_type, details = _parse_error_response(response)
        assert message == "Invalid request"
        assert error_type == "bad"
        assert details is None

    def test_parse_detail_as_dict(self) -> None:
        response = httpx.Response(
            400,
            json={"detail": {"message": "Custom error message", "type": "custom_error"}},
        )
        message, error_type, details = _parse_error_response(response)
        assert message == "Custom error message"
        assert error_type == "custom_error"
        assert details["message"] == "Custom error message"

    def test_parse_message_field(self) -> None:
        response = httpx.Response(400, json={"message": "Something broke"})
        message, _, _ = _parse_error_response(response)
        assert message == "Something broke"

    def test_parse_error_field(self) -> None:
        response = httpx.Response(409, json={"error": "Duplicate Account"})
        message, _, _ = _parse_error_response(response)
        assert message == "Duplicate Account"

    def test_parse_plain_text(self) -> None:
        """The original feed backend answered a bare "Loading" while starting."""
        response = httpx.Response(500, text="Loading")
        message, error_type, details = _parse_error_response(response)
        assert message == "Loading"
        assert error_type is None
        assert details is None

    def test_parse_empty_body(self) -> None:
        message, _, _ = _parse_error_response(httpx.Response(502))
        assert message == "HTTP 502 error"


# =============================================================================
# Helper Function Tests: _raise_for_status
# =============================================================================

class TestRaiseForStatus:
    """Tests for the _raise_for_status helper function."""

    def test_success_does_not_raise(self) -> None:
        for status_code in [200, 201, 204]:
            _raise_for_status(httpx.Response(status_code=status_code))

    def test_4xx_raises_api_error(self) -> None:
        response = httpx.Response(409, json={"error": "Duplicate Account", "detail": "taken"})

        with pytest.raises(APIError) as exc_info:
            _raise_for_status(response)

        assert not isinstance(exc_info.value, ServerError)
        assert exc_info.value.status_code == 409
        assert exc_info.value.response_body["error"] == "Duplicate Account"

    def test_5xx_raises_server_error(self) -> None:
        with pytest.raises(ServerError) as exc_info:
            _raise_for_status(httpx.Response(503, json={"detail": "Message feed is still loading"}))
        assert exc_info.value.status_code == 503
        assert "loading" in exc_info.value.message


# =============================================================================
# Helper Function Tests: _calculate_backoff
# =============================================================================

class TestCalculateBackoff:
    """Tests for exponential backoff calculation."""

    def test_doubles_each_attempt(self) -> None:
        assert _calculate_backoff(0) == DEFAULT_RETRY_BACKOFF_BASE
        assert _calculate_backoff(1) == DEFAULT_RETRY_BACKOFF_BASE * 2
        assert _calculate_backoff(3) == DEFAULT_RETRY_BACKOFF_BASE * 8

    def test_is_capped(self) -> None:
        assert _calculate_backoff(20) == DEFAULT_RETRY_BACKOFF_MAX

    def test_custom_base(self) -> None:
        assert _calculate_backoff(2, base=0.1) == pytest.approx(0.4)

    def test_retryable_status_codes(self) -> None:
        assert RETRYABLE_STATUS_CODES == {502, 503, 504}


# =============================================================================
# AsyncHTTPClient Tests
# =============================================================================

class TestAsyncHTTPClientInit:
    """Tests for AsyncHTTPClient initialization."""

    def test_default_configuration(self) -> None:
        client = AsyncHTTPClient()
        assert client.base_url == ""
        assert client.timeout == 30.0
        assert client.retry_enabled is False
        assert client.max_retries == 3

    def test_base_url_trailing_slash_stripped(self) -> None:
        client = AsyncHTTPClient(base_url="http://localhost:8081/")
        assert client.base_url == "http://localhost:8081"


class TestAsyncHTTPClientRequests:
    """Tests for AsyncHTTPClient request methods."""

    async def test_async_context_manager(self) -> None:
        async with AsyncHTTPClient(base_url="http://localhost:8081") as client:
            assert isinstance(client, AsyncHTTPClient)

    async def test_get_request(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/config.json"
            return httpx.Response(200, json={"loading": True})

        async with mock_client(handler) as client:
            assert await client.get("/config.json") == {"loading": True}

    async def test_post_request(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert json.loads(request.content) == {"id": "alice"}
            return httpx.Response(200, json={"userAccount": "00"})

        async with mock_client(handler) as client:
            assert await client.post("/login", json={"id": "alice"}) == {"userAccount": "00"}

    async def test_absolute_url_without_base(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"url": str(request.url)})

        async with mock_client(handler, base_url="") as client:
            result = await client.get("http://feed.test/config.json")
        assert result == {"url": "http://feed.test/config.json"}

    async def test_none_params_are_dropped(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=dict(request.url.params))

        async with mock_client(handler) as client:
            assert await client.get("/q", params={"a": "1", "b": None}) == {"a": "1"}

    async def test_empty_body_is_none(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(204)

        async with mock_client(handler) as client:
            assert await client.post("/ping") is None


class TestAsyncHTTPClientErrorHandling:
    """Tests for AsyncHTTPClient error handling."""

    async def test_error_status_raises_api_error(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"detail": "Not Found"})

        async with mock_client(handler) as client:
            with pytest.raises(APIError) as exc_info:
                await client.get("/missing")
        assert exc_info.value.status_code == 404

    async def test_connection_error(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused")

        async with mock_client(handler) as client:
            with pytest.raises(UnreachableEndpoint) as exc_info:
                await client.get("/config.json")
        assert exc_info.value.url == "http://localhost:8081/config.json"
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    async def test_timeout_error(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.TimeoutException("Timed out")

        async with mock_client(handler, timeout=5.0) as client:
            with pytest.raises(RequestTimeout) as exc_info:
                await client.get("/slow")
        assert exc_info.value.timeout == 5.0

    async def test_invalid_json_body(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with mock_client(handler) as client:
            with pytest.raises(ValueError):
                await client.get("/config.json")


class TestAsyncHTTPClientRetry:
    """Tests for AsyncHTTPClient retry logic."""

    async def test_retry_on_503(self, monkeypatch) -> None:
        monkeypatch.setattr("feed._http._calculate_backoff", lambda attempt: 0)
        attempts = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts < 2:
                return httpx.Response(503, json={"detail": "Unavailable"})
            return httpx.Response(200, json={"ok": True})

        async with mock_client(handler, retry_enabled=True, max_retries=3) as client:
            assert await client.get("/test") == {"ok": True}
        assert attempts == 2

    async def test_max_retries_exhausted(self, monkeypatch) -> None:
        monkeypatch.setattr("feed._http._calculate_backoff", lambda attempt: 0)
        attempts = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(503, json={"detail": "Always unavailable"})

        async with mock_client(handler, retry_enabled=True, max_retries=2) as client:
            with pytest.raises(ServerError):
                await client.get("/test")
        assert attempts == 3  # Initial + 2 retries

    async def test_connection_errors_are_retried(self, monkeypatch) -> None:
        monkeypatch.setattr("feed._http._calculate_backoff", lambda attempt: 0)
        attempts = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise httpx.ConnectError("Connection refused")
            return httpx.Response(200, json={"ok": True})

        async with mock_client(handler, retry_enabled=True) as client:
            assert await client.get("/test") == {"ok": True}

    async def test_no_retry_when_disabled(self) -> None:
        attempts = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(503, json={"detail": "Unavailable"})

        async with mock_client(handler) as client:
            with pytest.raises(ServerError):
                await client.get("/test")
        assert attempts == 1
