"""Async HTTP transport for the backing REST API.

This module wraps ``httpx.AsyncClient``. It is created once at startup and
reused for every tool call; it does not retry and leaves connection
pooling to httpx.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from toolbridge.errors import TransportError

logger = logging.getLogger(__name__)

# Upstream error bodies are cut to this length before reaching the model
MAX_ERROR_BODY = 500


@dataclass
class TransportResponse:
    """A successful (2xx) response from the backing API."""

    status_code: int
    text: str
    content_type: str = ""

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type.lower()


class HttpTransport:
    """HTTP client for the backing REST API.

    Attributes:
        base_url: Base URL that operation paths are appended to
        _client: The underlying httpx.AsyncClient instance
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Base URL of the backing API
            headers: Static headers sent with every request
            timeout: Per-request timeout in seconds, None for no limit
            client: Optional preconfigured client (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            timeout=httpx.Timeout(timeout),
        )
        logger.info(f"HttpTransport initialized with base URL: {self.base_url}")

    def build_url(self, path: str) -> str:
        """Join the base URL with an operation path."""
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        headers: dict[str, str] | None = None,
        json: Any = None,
    ) -> TransportResponse:
        """Send a request to the backing API.

        Args:
            method: HTTP verb
            path: Concrete path (placeholders already substituted)
            params: Query parameters as ordered key/value pairs
            headers: Per-request headers
            json: JSON payload, sent only when not None

        Returns:
            TransportResponse: The 2xx response

        Raises:
            TransportError: On network failure (no status code) or a
                non-2xx status (with the status code)
        """
        url = self.build_url(path)
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        if headers:
            kwargs["headers"] = headers
        if json is not None:
            kwargs["json"] = json

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {url} timed out: {e!r}")
            raise TransportError(f"Request timed out ({type(e).__name__})") from e
        except httpx.RequestError as e:
            logger.warning(f"{method} {url} failed: {e!r}")
            raise TransportError(f"Network error: {str(e) or type(e).__name__}") from e

        if not response.is_success:
            detail = response.text[:MAX_ERROR_BODY] or response.reason_phrase
            logger.warning(f"{method} {url} returned HTTP {response.status_code}")
            raise TransportError(
                f"HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        logger.debug(f"{method} {url} returned HTTP {response.status_code}")
        return TransportResponse(
            status_code=response.status_code,
            text=response.text,
            content_type=response.headers.get("content-type", ""),
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
        logger.debug("HttpTransport closed")
