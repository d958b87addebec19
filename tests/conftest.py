"""Shared fixtures: settings, a controllable clock and a fake IGDB backend."""

import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
import respx
from checkpoint_catalog.config import IGDBConfig, LoggingConfig, RetryConfig, Settings, SyncConfig
from checkpoint_catalog.ingestion.extractors import CatalogClient, TokenProvider
from checkpoint_catalog.ingestion.utils import RateLimiter, RateLimiterConfig
from checkpoint_catalog.storage import InMemoryGameRepository

IGDB_BASE = "https://api.igdb.com/v4"
TOKEN_URL = "https://id.twitch.tv/oauth2/token"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        self._monotonic = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds


class FakeIGDB:
    """
    In-memory stand-in for the IGDB and Twitch endpoints.

    ``install()`` must be called inside an active respx mock.
    """

    def __init__(self) -> None:
        self.games: list[dict[str, Any]] = []
        self.screenshots: dict[int, str] = {}
        self.fail_offsets: set[int] = set()
        self.garbled_offsets: set[int] = set()
        self.fail_screenshot_ids: set[int] = set()
        self.token_status = 200
        self.token_calls = 0
        self.game_queries: list[str] = []
        self.screenshot_queries: list[str] = []

    def add_game(
        self,
        game_id: int,
        name: str,
        *,
        rating: float | None = 90.0,
        votes: int | None = 200,
        screenshots: dict[int, str] | None = None,
        **extra: Any,
    ) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": game_id,
            "name": name,
            "total_rating": rating,
            "total_rating_count": votes,
            "category": 0,
            **extra,
        }
        if screenshots:
            record["screenshots"] = list(screenshots)
            self.screenshots.update(screenshots)
        self.games.append(record)
        return record

    def install(self) -> None:
        respx.post(TOKEN_URL).mock(side_effect=self._token)
        respx.post(f"{IGDB_BASE}/games").mock(side_effect=self._games)
        respx.post(f"{IGDB_BASE}/screenshots").mock(side_effect=self._screenshots)

    def _token(self, request: httpx.Request) -> httpx.Response:
        self.token_calls += 1
        if self.token_status != 200:
            return httpx.Response(self.token_status, json={"message": "invalid client"})
        return httpx.Response(
            200,
            json={
                "access_token": f"token-{self.token_calls}",
                "expires_in": 5000000,
                "token_type": "bearer",
            },
        )

    def _games(self, request: httpx.Request) -> httpx.Response:
        body = request.content.decode()
        self.game_queries.append(body)

        by_id = re.search(r"where id = (\d+);", body)
        if by_id:
            wanted = int(by_id.group(1))
            return httpx.Response(200, json=[g for g in self.games if g["id"] == wanted])

        limit_match = re.search(r"limit (\d+);", body)
        offset_match = re.search(r"offset (\d+);", body)
        limit = int(limit_match.group(1)) if limit_match else 10
        offset = int(offset_match.group(1)) if offset_match else 0
        if offset in self.fail_offsets:
            return httpx.Response(503, text="upstream unavailable")
        if offset in self.garbled_offsets:
            return httpx.Response(200, text="<html>gateway</html>")

        search = re.search(r'search "([^"]*)";', body)
        games = self.games
        if search:
            term = search.group(1).casefold()
            games = [g for g in games if term in g["name"].casefold()]
        return httpx.Response(200, json=games[offset : offset + limit])

    def _screenshots(self, request: httpx.Request) -> httpx.Response:
        body = request.content.decode()
        self.screenshot_queries.append(body)
        match = re.search(r"where id = \(([\d,]+)\);", body)
        ids = [int(i) for i in match.group(1).split(",")] if match else []
        if any(i in self.fail_screenshot_ids for i in ids):
            return httpx.Response(500, text="boom")
        return httpx.Response(
            200,
            json=[{"id": i, "url": self.screenshots[i]} for i in ids if i in self.screenshots],
        )


@pytest.fixture
def settings(tmp_path: Any) -> Settings:
    """Settings with small pages and no delays."""
    return Settings(
        igdb=IGDBConfig(
            client_id="test-client",
            client_secret="test-secret",
            page_size=2,
            page_delay_seconds=0,
        ),
        sync=SyncConfig(storage_path=tmp_path / "games.json", max_search_results=10),
        retry=RetryConfig(max_attempts=3),
        logging=LoggingConfig(level="DEBUG", format="console"),
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def igdb() -> FakeIGDB:
    return FakeIGDB()


@pytest.fixture
def repository() -> InMemoryGameRepository:
    return InMemoryGameRepository()


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def make_client(settings: Settings, clock: FrozenClock) -> Callable[..., CatalogClient]:
    """Build catalog clients wired to the test settings and clock."""

    def factory(**overrides: Any) -> CatalogClient:
        kwargs: dict[str, Any] = {
            "settings": settings,
            "token_provider": TokenProvider(settings=settings, clock=clock),
            "rate_limiter": RateLimiter(
                RateLimiterConfig(requests_per_second=1000, burst_size=1000), clock=clock
            ),
            "sleep": _no_sleep,
        }
        kwargs.update(overrides)
        return CatalogClient(**kwargs)

    return factory

