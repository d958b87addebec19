"""
Base API client with error mapping and structured logging.

Every upstream call goes through ``_make_request`` which turns
transport failures and error status codes into the exception
taxonomy below. There are no automatic retries: a failed call is
reported to the caller, which decides whether it is fatal.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx

from checkpoint_catalog.config import Settings, get_settings
from checkpoint_catalog.logger import get_logger


class ExtractionError(Exception):
    """Base exception for upstream catalog errors."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        endpoint: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.endpoint = endpoint
        self.status_code = status_code
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)


class AuthError(ExtractionError):
    """Raised when credentials are rejected or a token cannot be obtained."""

    pass


class TransportError(ExtractionError):
    """Raised on network failures and non-auth error responses."""

    pass


class RateLimitError(TransportError):
    """Raised when the upstream answers 429."""

    pass


class NotFoundError(ExtractionError):
    """Raised when a requested record does not exist upstream."""

    pass


class ValidationError(ExtractionError):
    """Raised when a response does not match the expected shape."""

    pass


class BaseAPIClient(ABC):
    """
    Abstract base class for upstream API clients.

    Provides:
    - HTTP client management (owned or injected)
    - Status code to exception mapping
    - Structured logging

    Subclasses must implement:
    - source_name: Identifier for the data source
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings: Application settings (uses cached settings if None)
            http_client: Shared HTTP client; closed by its owner, not by us
            timeout: HTTP request timeout in seconds
        """
        self._settings = settings or get_settings()
        self._timeout = timeout or self._settings.igdb.timeout_seconds
        self._logger = get_logger(
            self.__class__.__name__,
            component="client",
            source=self.source_name,
        )
        self._client = http_client
        self._owns_client = http_client is None

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return identifier for this data source."""
        ...

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={
                    "User-Agent": "CheckpointCatalog/1.0",
                    "Accept": "application/json",
                },
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _make_request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make a single HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Request URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            httpx.Response: Successful response

        Raises:
            AuthError: On 401/403
            RateLimitError: On 429
            NotFoundError: On 404
            TransportError: On network failures and other error responses
        """
        self._logger.debug("Making request", method=method, url=url)

        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            self._logger.warning("Request failed", url=url, error=str(e))
            raise TransportError(
                f"Request to {url} failed: {e}",
                source=self.source_name,
                endpoint=url,
                original_error=e,
            ) from e

        status = response.status_code
        if status in (401, 403):
            raise AuthError(
                f"Upstream rejected credentials: {status}",
                source=self.source_name,
                endpoint=url,
                status_code=status,
            )
        if status == 429:
            retry_after = response.headers.get("Retry-After", "1")
            raise RateLimitError(
                f"Rate limit exceeded. Retry after {retry_after}s",
                source=self.source_name,
                endpoint=url,
                status_code=429,
            )
        if status == 404:
            raise NotFoundError(
                f"Not found: {url}",
                source=self.source_name,
                endpoint=url,
                status_code=404,
            )
        if status >= 400:
            raise TransportError(
                f"API error: {status}",
                source=self.source_name,
                endpoint=url,
                status_code=status,
            )

        return response
