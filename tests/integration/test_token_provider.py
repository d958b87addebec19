"""Integration tests for the OAuth token provider with mocked HTTP responses."""

import asyncio
from typing import Any

import httpx
import pytest
import respx
from checkpoint_catalog.config import Settings
from checkpoint_catalog.ingestion.extractors import AuthError, InMemoryTokenCache, TokenProvider

TOKEN_URL = "https://id.twitch.tv/oauth2/token"


def _token_response(value: str = "abc123") -> httpx.Response:
    return httpx.Response(
        200,
        json={"access_token": value, "expires_in": 5587808, "token_type": "bearer"},
    )


class TestTokenProvider:
    """Integration tests for token caching and refresh."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_exchanges_client_credentials(self, settings: Settings, clock: Any) -> None:
        """Test the client-credentials grant is sent as query parameters."""
        route = respx.post(TOKEN_URL).mock(return_value=_token_response())

        async with TokenProvider(settings=settings, clock=clock) as tokens:
            token = await tokens.get_token()

        assert token.access_token == "abc123"
        params = route.calls.last.request.url.params
        assert params["client_id"] == "test-client"
        assert params["client_secret"] == "test-secret"
        assert params["grant_type"] == "client_credentials"

    @respx.mock
    @pytest.mark.asyncio
    async def test_token_cached_within_ttl(self, settings: Settings, clock: Any) -> None:
        """Test the token is reused until the TTL runs out."""
        route = respx.post(TOKEN_URL).mock(
            side_effect=[_token_response("first"), _token_response("second")]
        )

        async with TokenProvider(settings=settings, clock=clock) as tokens:
            first = await tokens.get_token()
            clock.advance(3599)
            again = await tokens.get_token()
            clock.advance(1)
            refreshed = await tokens.get_token()

        assert first.access_token == again.access_token == "first"
        assert refreshed.access_token == "second"
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self, settings: Settings, clock: Any) -> None:
        """Test an invalidated token is not reused."""
        route = respx.post(TOKEN_URL).mock(
            side_effect=[_token_response("first"), _token_response("second")]
        )

        async with TokenProvider(settings=settings, clock=clock) as tokens:
            await tokens.get_token()
            tokens.invalidate()
            token = await tokens.get_token()

        assert token.access_token == "second"
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(
        self, settings: Settings, clock: Any
    ) -> None:
        """Test single-flight refresh under concurrent callers."""
        route = respx.post(TOKEN_URL).mock(return_value=_token_response())

        async with TokenProvider(settings=settings, clock=clock) as tokens:
            results = await asyncio.gather(*(tokens.get_token() for _ in range(5)))

        assert {t.access_token for t in results} == {"abc123"}
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_cache_is_per_instance(self, settings: Settings, clock: Any) -> None:
        """Test providers do not share tokens unless they share a cache."""
        route = respx.post(TOKEN_URL).mock(return_value=_token_response())
        shared = InMemoryTokenCache()

        async with (
            TokenProvider(settings=settings, clock=clock, cache=shared) as a,
            TokenProvider(settings=settings, clock=clock, cache=shared) as b,
            TokenProvider(settings=settings, clock=clock) as c,
        ):
            await a.get_token()
            await b.get_token()
            await c.get_token()

        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 403, 500])
    async def test_error_status_raises_auth_error(
        self, settings: Settings, clock: Any, status: int
    ) -> None:
        """Test every failed exchange surfaces as AuthError."""
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(status, json={"message": "nope"}))

        async with TokenProvider(settings=settings, clock=clock) as tokens:
            with pytest.raises(AuthError):
                await tokens.get_token()

    @respx.mock
    @pytest.mark.asyncio
    async def test_missing_access_token(self, settings: Settings, clock: Any) -> None:
        """Test a response without a token is an AuthError."""
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"expires_in": 10}))

        async with TokenProvider(settings=settings, clock=clock) as tokens:
            with pytest.raises(AuthError, match="access token"):
                await tokens.get_token()

    @respx.mock
    @pytest.mark.asyncio
    async def test_network_error(self, settings: Settings, clock: Any) -> None:
        """Test transport failures are reported as AuthError."""
        respx.post(TOKEN_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        async with TokenProvider(settings=settings, clock=clock) as tokens:
            with pytest.raises(AuthError) as exc_info:
                await tokens.get_token()

        assert exc_info.value.source == "twitch_oauth"
