"""Internal HTTP handling utilities for the message feed client.

This module provides the low-level HTTP communication layer used by the
bootstrap poller, the login call and the ledger RPC connection. It handles:
- Making async HTTP requests
- Response parsing and error handling
- Optional retry logic with exponential backoff
- Connection management

This is an internal module and should not be imported directly by users.
"""

import asyncio
from typing import Any, Literal

import httpx

from feed.exceptions import APIError, RequestTimeout, ServerError, UnreachableEndpoint

# HTTP methods supported by the client
HttpMethod = Literal["GET", "POST"]

# Status codes that trigger automatic retry (when retry is enabled)
RETRYABLE_STATUS_CODES = {502, 503, 504}

# Default backoff settings for retry logic
DEFAULT_RETRY_BACKOFF_BASE = 0.5  # seconds
DEFAULT_RETRY_BACKOFF_MAX = 30.0  # seconds


def _parse_error_response(response: httpx.Response) -> tuple[str, str | None, dict | None]:
    """Parse an error response to extract message, type, and details.

    Falls back to the raw response text if the body is not JSON.

    Returns:
        A tuple of (message, error_type, details).
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        if text:
            return text, None, None
        return f"HTTP {response.status_code} error", None, None

    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str):
            return detail, body.get("type"), body.get("details")
        if isinstance(detail, dict):
            return detail.get("message", str(detail)), detail.get("type"), detail
        if "message" in body:
            return body["message"], body.get("type"), body.get("details")
        if "error" in body:
            return str(body["error"]), body.get("type"), body.get("details")

    return str(body), None, None


def _raise_for_status(response: httpx.Response) -> None:
    """Raise an appropriate exception for error status codes.

    Raises:
        ServerError: For HTTP 5xx responses.
        APIError: For HTTP 4xx responses.
    """
    if response.is_success:
        return

    message, error_type, details = _parse_error_response(response)
    try:
        response_body = response.json()
    except ValueError:
        response_body = response.text

    if response.status_code >= 500:
        raise ServerError(
            message=message,
            status_code=response.status_code,
            details=details,
            response_body=response_body,
        )
    raise APIError(
        message=message,
        status_code=response.status_code,
        error_type=error_type,
        details=details,
        response_body=response_body,
    )


def _calculate_backoff(attempt: int, base: float = DEFAULT_RETRY_BACKOFF_BASE) -> float:
    """Exponential backoff delay (``base * 2^attempt``), capped."""
    delay = base * (2 ** attempt)
    return min(delay, DEFAULT_RETRY_BACKOFF_MAX)


class AsyncHTTPClient:
    """Asynchronous HTTP client for JSON endpoints.

    Wraps httpx.AsyncClient with error handling and optional retry logic.

    Attributes:
        base_url: The base URL for all requests.
        timeout: Request timeout in seconds.
        retry_enabled: Whether to retry on transient failures.
        max_retries: Maximum number of retry attempts.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        retry_enabled: bool = False,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async HTTP client.

        Args:
            base_url: The base URL for all requests. May be empty when every
                request uses an absolute URL.
            timeout: Request timeout in seconds.
            retry_enabled: Whether to retry on transient failures.
            max_retries: Maximum number of retry attempts.
            transport: Custom transport (e.g., MockTransport for testing).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_enabled = retry_enabled
        self.max_retries = max_retries

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTPClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def request(
        self,
        method: HttpMethod,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Make an async HTTP request and return the parsed JSON response.

        Args:
            method: The HTTP method.
            path: The URL path (appended to base_url) or an absolute URL.
            params: Query parameters to include in the URL.
            json: JSON body to send with the request.

        Returns:
            The parsed JSON response body, or None for empty responses.

        Raises:
            UnreachableEndpoint: If the connection fails.
            RequestTimeout: If the request times out.
            APIError: If the server returns an error response.
            ValueError: If a successful response body is not valid JSON.
        """
        url = f"{self.base_url}{path}"

        if params:
            params = {k: v for k, v in params.items() if v is not None}

        last_exception: Exception | None = None
        attempts = self.max_retries + 1 if self.retry_enabled else 1

        for attempt in range(attempts):
            try:
                response = await self._client.request(
                    method=method,
                    url=path,
                    params=params,
                    json=json,
                )

                if (
                    self.retry_enabled
                    and response.status_code in RETRYABLE_STATUS_CODES
                    and attempt < attempts - 1
                ):
                    await asyncio.sleep(_calculate_backoff(attempt))
                    continue

                _raise_for_status(response)

                if response.content:
                    return response.json()
                return None

            except httpx.TimeoutException as e:
                last_exception = RequestTimeout(
                    message=f"Request to {url} timed out",
                    timeout=self.timeout,
                    url=url,
                )
                if not self.retry_enabled or attempt >= attempts - 1:
                    raise last_exception from e
                await asyncio.sleep(_calculate_backoff(attempt))

            except httpx.TransportError as e:
                last_exception = UnreachableEndpoint(
                    message=f"Failed to connect to {url}",
                    url=url,
                    cause=e,
                )
                if not self.retry_enabled or attempt >= attempts - 1:
                    raise last_exception from e
                await asyncio.sleep(_calculate_backoff(attempt))

        if last_exception:
            raise last_exception
        raise RuntimeError("Unexpected error in request retry loop")

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return await self.request("POST", path, params=params, json=json)
