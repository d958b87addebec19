"""
IGDB catalog client.

Fetches game records through the IGDB v4 query API, validates them
against the contracts, normalizes media URLs and attaches derived
ratings. Calls are made one at a time; paginated reads pause for a
fixed delay between pages.

API Reference: https://api-docs.igdb.com/
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from checkpoint_catalog.config import Settings
from checkpoint_catalog.ingestion.contracts import IGDBGame, ImageRef
from checkpoint_catalog.ingestion.extractors.auth import TokenProvider
from checkpoint_catalog.ingestion.extractors.base import (
    AuthError,
    BaseAPIClient,
    NotFoundError,
    TransportError,
    ValidationError,
)
from checkpoint_catalog.ingestion.images import (
    ARTWORK_SIZE,
    COVER_SIZE,
    SCREENSHOT_SIZE,
)
from checkpoint_catalog.ingestion.images import (
    improve_image_quality as _improve_image_quality,
)
from checkpoint_catalog.ingestion.query import (
    GAME_FIELDS,
    SCREENSHOT_FIELDS,
    IGDBQuery,
    id_list,
)
from checkpoint_catalog.ingestion.ratings import (
    DEFAULT_RATING_RULES,
    RatingRule,
)
from checkpoint_catalog.ingestion.ratings import (
    compute_derived_ratings as _compute_derived_ratings,
)
from checkpoint_catalog.ingestion.utils.rate_limiter import RateLimiter, RateLimiterConfig

MAIN_GAME_CATEGORIES = (0, 8, 9)  # main game, remake, remaster


class CatalogClient(BaseAPIClient):
    """
    Client for the IGDB ``/games`` and ``/screenshots`` endpoints.

    Example:
        >>> async with CatalogClient() as client:
        ...     games = await client.search("hollow knight", limit=5)
        ...     print(games[0].cover_url)
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        token_provider: TokenProvider | None = None,
        rate_limiter: RateLimiter | None = None,
        rating_rules: Sequence[RatingRule] = DEFAULT_RATING_RULES,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        super().__init__(settings=settings, http_client=http_client)
        igdb = self._settings.igdb
        self._tokens = token_provider or TokenProvider(
            settings=self._settings, http_client=http_client
        )
        self._rate_limiter = rate_limiter or RateLimiter(
            RateLimiterConfig(
                requests_per_second=igdb.requests_per_second,
                burst_size=igdb.requests_per_second,
            )
        )
        self._rating_rules = tuple(rating_rules)
        self._sleep = sleep
        self._page_size = igdb.page_size
        self._page_delay = igdb.page_delay_seconds

    @property
    def source_name(self) -> str:
        return "igdb"

    async def close(self) -> None:
        await self._tokens.close()
        await super().close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, endpoint: str, query: IGDBQuery) -> list[dict[str, Any]]:
        """
        Send one query and return the decoded JSON array.

        Raises:
            AuthError: Token unavailable or rejected
            TransportError: Network failure or error response
            ValidationError: Body is not a JSON array
        """
        token = await self._tokens.get_token()
        await self._rate_limiter.acquire()

        url = f"{self._settings.igdb.base_url}/{endpoint}"
        try:
            response = await self._make_request(
                "POST",
                url,
                content=query.render(),
                headers={
                    "Client-ID": self._settings.igdb.client_id,
                    "Authorization": f"Bearer {token.access_token}",
                    "Content-Type": "text/plain",
                },
            )
        except AuthError:
            self._tokens.invalidate()
            raise
        except NotFoundError as e:
            # IGDB answers 404 only for unknown endpoints
            raise TransportError(
                str(e), source=self.source_name, endpoint=url, status_code=404
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ValidationError(
                "Response body is not valid JSON",
                source=self.source_name,
                endpoint=url,
                original_error=e,
            ) from e

        if not isinstance(data, list):
            raise ValidationError(
                f"Expected a JSON array, got {type(data).__name__}",
                source=self.source_name,
                endpoint=url,
            )
        return data

    def _parse_games(self, items: list[dict[str, Any]]) -> list[IGDBGame]:
        """Validate records one by one, dropping the ones that do not fit."""
        games: list[IGDBGame] = []
        for item in items:
            try:
                game = IGDBGame.model_validate(item)
            except PydanticValidationError as e:
                self._logger.warning(
                    "Dropping invalid record",
                    external_id=item.get("id") if isinstance(item, dict) else None,
                    error_count=e.error_count(),
                )
                continue
            games.append(self._prepare(game))
        return games

    def _prepare(self, game: IGDBGame) -> IGDBGame:
        """Normalize media URLs and attach derived ratings."""
        if game.cover and game.cover.url:
            game.cover.url = self.improve_image_quality(game.cover.url, COVER_SIZE)
        for artwork in game.artworks:
            if artwork.url:
                artwork.url = self.improve_image_quality(artwork.url, ARTWORK_SIZE)
        game.derived_ratings = self.compute_derived_ratings(game)
        return game

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, query: str, limit: int = 10, offset: int = 0) -> list[IGDBGame]:
        """
        Fetch one page of search results.

        Args:
            query: Free-text search term
            limit: Page size
            offset: Records to skip

        Returns:
            list[IGDBGame]: Normalized records in upstream relevance order
        """
        _, games = await self._search_page(query, limit, offset)
        return games

    async def _search_page(
        self, query: str, limit: int, offset: int
    ) -> tuple[int, list[IGDBGame]]:
        """One search page as (raw record count, valid records)."""
        body = IGDBQuery(fields=GAME_FIELDS, search=query, limit=limit, offset=offset)
        self._logger.debug("Searching", query=query, limit=limit, offset=offset)
        raw = await self._post("games", body)
        return len(raw), self._parse_games(raw)

    async def iter_search(
        self, query: str, max_results: int | None = None
    ) -> AsyncIterator[list[IGDBGame]]:
        """
        Yield pages of search results until exhausted or ``max_results`` is reached.

        Any page failure propagates to the caller.
        """
        limit = max_results or self._settings.sync.max_search_results
        offset = 0
        while offset < limit:
            if offset:
                await self._sleep(self._page_delay)
            size = min(self._page_size, limit - offset)
            received, page = await self._search_page(query, size, offset)
            if page:
                yield page
            if received < size:
                return
            offset += size

    async def search_all(self, query: str, max_results: int | None = None) -> list[IGDBGame]:
        """
        Collect search results across pages.

        A transport failure or an unreadable body on any page ends the
        scan; whatever was collected before it is returned. ``AuthError``
        still propagates.

        Args:
            query: Free-text search term
            max_results: Upper bound on records collected

        Returns:
            list[IGDBGame]: Records collected so far
        """
        results: list[IGDBGame] = []
        try:
            async for page in self.iter_search(query, max_results):
                results.extend(page)
        except (TransportError, ValidationError) as e:
            self._logger.warning(
                "Search scan stopped early",
                query=query,
                collected=len(results),
                error=str(e),
            )
        return results

    # ------------------------------------------------------------------
    # Criteria listings
    # ------------------------------------------------------------------

    def _criteria_query(
        self,
        *,
        min_votes: int,
        min_rating: float,
        since: datetime | None,
        main_games_only: bool,
    ) -> IGDBQuery:
        where = [f"total_rating_count >= {int(min_votes)}", f"total_rating >= {min_rating:g}"]
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            where.append(f"first_release_date >= {int(since.timestamp())}")
        if main_games_only:
            where.append(f"category = {id_list(MAIN_GAME_CATEGORIES)}")
        return IGDBQuery(
            fields=GAME_FIELDS,
            where=where,
            sort="total_rating desc",
        )

    async def iter_by_criteria(
        self,
        *,
        min_votes: int,
        min_rating: float,
        since: datetime | None = None,
        max_results: int | None = None,
        main_games_only: bool = False,
    ) -> AsyncIterator[list[IGDBGame]]:
        """
        Yield pages of records meeting the quality thresholds.

        Records are re-checked against the thresholds before they are
        yielded.
        Any page failure propagates to the caller.
        """
        query = self._criteria_query(
            min_votes=min_votes,
            min_rating=min_rating,
            since=since,
            main_games_only=main_games_only,
        )
        offset = 0
        accepted = 0
        while max_results is None or accepted < max_results:
            if offset:
                await self._sleep(self._page_delay)
            query.limit = self._page_size
            query.offset = offset
            self._logger.debug("Listing by criteria", offset=offset, min_votes=min_votes)
            raw = await self._post("games", query)
            page = self._parse_games(raw)
            offset += self._page_size

            kept = [
                game
                for game in page
                if game.total_rating is not None
                and game.total_rating >= min_rating
                and (game.total_rating_count or 0) >= min_votes
            ]
            if len(kept) < len(page):
                self._logger.debug("Filtered records below thresholds", dropped=len(page) - len(kept))
            if max_results is not None:
                kept = kept[: max_results - accepted]
            accepted += len(kept)
            if kept:
                yield kept
            if len(raw) < self._page_size:
                return

    async def list_by_criteria(
        self,
        *,
        min_votes: int,
        min_rating: float,
        since: datetime | None = None,
        max_results: int | None = None,
        main_games_only: bool = False,
    ) -> list[IGDBGame]:
        """
        Collect every record meeting the quality thresholds.

        Args:
            min_votes: Minimum rating count
            min_rating: Minimum aggregate rating
            since: Only games released on or after this instant
            max_results: Upper bound on records returned
            main_games_only: Exclude DLC, bundles, mods and the like

        Returns:
            list[IGDBGame]: Records sorted by rating, best first
        """
        results: list[IGDBGame] = []
        async for page in self.iter_by_criteria(
            min_votes=min_votes,
            min_rating=min_rating,
            since=since,
            max_results=max_results,
            main_games_only=main_games_only,
        ):
            results.extend(page)
        return results

    # ------------------------------------------------------------------
    # Single records and sub-resources
    # ------------------------------------------------------------------

    async def get_details(self, external_id: int) -> IGDBGame:
        """
        Fetch one record by IGDB id.

        Raises:
            NotFoundError: If no such game exists
        """
        body = IGDBQuery(fields=GAME_FIELDS, where=[f"id = {int(external_id)}"], limit=1)
        games = self._parse_games(await self._post("games", body))
        if not games:
            raise NotFoundError(
                f"Game {external_id} not found",
                source=self.source_name,
                endpoint="games",
            )
        return games[0]

    async def get_screenshots(self, screenshot_ids: Sequence[int]) -> list[str]:
        """
        Resolve screenshot ids to display-quality URLs.

        Args:
            screenshot_ids: Ids from a game record's ``screenshots`` field

        Returns:
            list[str]: Absolute https URLs, in the order IGDB returns them
        """
        if not screenshot_ids:
            return []

        body = IGDBQuery(
            fields=SCREENSHOT_FIELDS,
            where=[f"id = {id_list(screenshot_ids)}"],
            limit=len(screenshot_ids),
        )
        urls: list[str] = []
        for item in await self._post("screenshots", body):
            try:
                image = ImageRef.model_validate(item)
            except PydanticValidationError:
                self._logger.warning("Dropping invalid screenshot", item=item)
                continue
            if image.url:
                urls.append(self.improve_image_quality(image.url, SCREENSHOT_SIZE))
        return urls

    # ------------------------------------------------------------------
    # Pure helpers
    # ------------------------------------------------------------------

    @staticmethod
    def improve_image_quality(url: str, size: str = COVER_SIZE) -> str:
        """Upgrade an image URL to ``size``; see ``ingestion.images``."""
        return _improve_image_quality(url, size)

    def compute_derived_ratings(self, record: IGDBGame) -> dict[str, float]:
        """Per-axis scores using this client's rule table."""
        return _compute_derived_ratings(record, self._rating_rules)
