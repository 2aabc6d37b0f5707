"""
HTTP client utilities for peerkeeper.

This module provides an asynchronous HTTP client with a bounded retry
budget, linear backoff, and a hard per-attempt timeout. Retryable
conditions are 429, any 5xx, timeouts, and transport errors; every other
response is handed back to the caller to interpret.
"""

from __future__ import annotations

import httpx
import asyncio
from typing import Any, Dict, Mapping, Optional, cast

from peerkeeper.utils.logger import get_logger
from peerkeeper.__version__ import __version__
from peerkeeper.exceptions import NetworkError
from peerkeeper.constants import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT_MS,
    RETRY_BACKOFF_MS,
    RETRYABLE_STATUS_CODES,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")


def is_retryable_status(status_code: int) -> bool:
    """Return True for 429 and any 5xx status."""
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500


class HTTPClient:
    """Asynchronous HTTP client with retries and per-attempt timeouts.

    Args:
        timeout_ms: Default per-attempt timeout in milliseconds.
        max_attempts: Total attempts for a retryable request (first try
            included).
        backoff_ms: Linear backoff step; attempt ``n`` waits ``n * backoff_ms``
            before the next one.
        verify_ssl: Whether to verify SSL certificates.
        user_agent: Custom User-Agent header value.
        transport: Optional httpx transport (used by tests).

    Example:
        >>> async with HTTPClient() as client:
        ...     response = await client.get("https://registry.npmjs.org/react")
    """

    def __init__(
        self,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_ms: int = RETRY_BACKOFF_MS,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.max_attempts = max(1, max_attempts)
        self.backoff_ms = backoff_ms
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HTTPClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> None:
        """Initialize the underlying httpx client if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                http2=self._transport is None,
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
                transport=self._transport,
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _attempt(
        self,
        method: str,
        url: str,
        timeout_s: float,
        headers: Optional[Mapping[str, str]],
    ) -> httpx.Response:
        assert self._client is not None
        # wait_for bounds the whole attempt and cancels (aborts) it on expiry
        return await asyncio.wait_for(
            self._client.request(
                method,
                url,
                headers=dict(headers) if headers else None,
                timeout=httpx.Timeout(timeout_s),
            ),
            timeout=timeout_s,
        )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> httpx.Response:
        """Execute an HTTP request, retrying transient failures.

        Returns the first non-retryable response (including 4xx). Raises
        :class:`NetworkError` once the attempt budget is spent.
        """
        await self._ensure_client()

        clean_url = url.strip().strip("\"'")
        timeout_s = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000
        last_status: Optional[int] = None
        last_message = "no attempt made"
        last_exc: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._attempt(method, clean_url, timeout_s, headers)

                if not is_retryable_status(response.status_code):
                    return response

                last_status = response.status_code
                last_message = f"HTTP {response.status_code}"
                last_exc = None
                logger.warning(
                    "Registry temporary error %d (%d/%d): %s",
                    response.status_code,
                    attempt,
                    self.max_attempts,
                    clean_url,
                )

            except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
                last_exc = exc
                last_status = None
                last_message = f"timed out after {timeout_s * 1000:.0f}ms"
                logger.warning(
                    "Request timeout (%d/%d): %s",
                    attempt,
                    self.max_attempts,
                    clean_url,
                )

            except httpx.TransportError as exc:
                last_exc = exc
                last_status = None
                last_message = str(exc) or exc.__class__.__name__
                logger.warning(
                    "Network error (%d/%d): %s",
                    attempt,
                    self.max_attempts,
                    exc,
                )

            if attempt < self.max_attempts:
                delay = attempt * self.backoff_ms / 1000
                logger.debug("Retrying in %.3fs", delay)
                await asyncio.sleep(delay)

        raise NetworkError(
            f"Request failed after {self.max_attempts} attempts: {last_message}",
            url=clean_url,
            status_code=last_status,
        ) from last_exc

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> httpx.Response:
        """Perform a GET request with retry logic."""
        return await self._request_with_retry(
            "GET", url, headers=headers, timeout_ms=timeout_ms
        )

    @staticmethod
    def decode_json(response: httpx.Response, url: str) -> Dict[str, Any]:
        """Parse a response body as a JSON object.

        Raises:
            NetworkError: The body is not JSON or not an object.
        """
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON response from {url}",
                url=url,
                status_code=response.status_code,
                response_body=response.text,
            ) from exc

        if not isinstance(data, dict):
            raise NetworkError(
                f"Expected JSON object from {url}",
                url=url,
                status_code=response.status_code,
                response_body=response.text,
            )

        return cast(Dict[str, Any], data)
