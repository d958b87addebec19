"""
OAuth client-credentials token management for IGDB.

IGDB authenticates through Twitch: a client id and secret are
exchanged for a bearer token that is reused until its TTL runs out.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

import httpx

from checkpoint_catalog.config import Settings
from checkpoint_catalog.ingestion.contracts import TokenResponse
from checkpoint_catalog.ingestion.extractors.base import AuthError, BaseAPIClient, ExtractionError
from checkpoint_catalog.ingestion.utils.clock import Clock, SystemClock


@dataclass(frozen=True)
class Token:
    """Bearer token and the monotonic time it was acquired."""

    access_token: str
    acquired_at: float
    expires_in: int = 0

    def age(self, now: float) -> float:
        return now - self.acquired_at


class TokenCache(Protocol):
    """Storage for the current token."""

    def get(self) -> Token | None: ...

    def set(self, token: Token) -> None: ...

    def clear(self) -> None: ...


class InMemoryTokenCache:
    """Token cache scoped to one provider instance."""

    def __init__(self) -> None:
        self._token: Token | None = None

    def get(self) -> Token | None:
        return self._token

    def set(self, token: Token) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class TokenProvider(BaseAPIClient):
    """
    Supplies a valid bearer token, refreshing it when expired.

    Concurrent callers share a single in-flight refresh.

    Example:
        >>> async with TokenProvider(settings=settings) as tokens:
        ...     token = await tokens.get_token()
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        cache: TokenCache | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(settings=settings, http_client=http_client)
        self._cache = cache or InMemoryTokenCache()
        self._clock = clock or SystemClock()
        self._ttl = self._settings.igdb.token_ttl_seconds
        self._lock = asyncio.Lock()

    @property
    def source_name(self) -> str:
        return "twitch_oauth"

    def _fresh(self, token: Token | None) -> bool:
        return token is not None and token.age(self._clock.monotonic()) < self._ttl

    async def get_token(self) -> Token:
        """
        Return the cached token, or exchange credentials for a new one.

        Returns:
            Token: Token younger than the configured TTL

        Raises:
            AuthError: If the exchange fails for any reason
        """
        token = self._cache.get()
        if self._fresh(token):
            return token  # type: ignore[return-value]

        async with self._lock:
            # another caller may have refreshed while we waited
            token = self._cache.get()
            if self._fresh(token):
                return token  # type: ignore[return-value]

            token = await self._request_token()
            self._cache.set(token)
            return token

    def invalidate(self) -> None:
        """Drop the cached token so the next call refreshes it."""
        self._cache.clear()

    async def _request_token(self) -> Token:
        igdb = self._settings.igdb
        self._logger.info("Requesting access token")

        try:
            response = await self._make_request(
                "POST",
                igdb.token_url,
                params={
                    "client_id": igdb.client_id,
                    "client_secret": igdb.client_secret.get_secret_value(),
                    "grant_type": "client_credentials",
                },
            )
            payload = TokenResponse.model_validate(response.json())
        except AuthError:
            self._logger.error("Token request rejected")
            raise
        except ExtractionError as e:
            self._logger.error("Token request failed", error=str(e))
            raise AuthError(
                f"Could not obtain access token: {e}",
                source=self.source_name,
                endpoint=igdb.token_url,
                status_code=e.status_code,
                original_error=e,
            ) from e
        except ValueError as e:  # bad JSON or missing access_token
            self._logger.error("Token response malformed", error=str(e))
            raise AuthError(
                "Token response did not contain an access token",
                source=self.source_name,
                endpoint=igdb.token_url,
                original_error=e,
            ) from e

        self._logger.info("Access token acquired", expires_in=payload.expires_in)
        return Token(
            access_token=payload.access_token,
            acquired_at=self._clock.monotonic(),
            expires_in=payload.expires_in,
        )
