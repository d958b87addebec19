"""
Catalog sync engine.

Pulls pages of upstream records and reconciles each one into the
local catalog: look the game up by external id, merge, allocate a
slug if needed, persist, then move on to the next record. Pages and
records are handled strictly one after another.

A failure tied to one record (a screenshot fetch, a validation
problem, an unresolvable uniqueness conflict) is logged and counted.
An authentication failure, or a failed page request, stops the run;
games persisted before that point stay in the catalog.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from checkpoint_catalog.catalog.maintenance import CatalogMaintenance, SlugCleanupReport
from checkpoint_catalog.catalog.models import Game, GameCategory, SearchResult
from checkpoint_catalog.catalog.slugs import SlugAllocator
from checkpoint_catalog.config import Settings, get_settings
from checkpoint_catalog.ingestion.contracts import IGDBGame
from checkpoint_catalog.ingestion.extractors import (
    AuthError,
    CatalogClient,
    ExtractionError,
)
from checkpoint_catalog.ingestion.utils.clock import Clock, SystemClock
from checkpoint_catalog.logger import get_logger
from checkpoint_catalog.storage.base import GameRepository, PersistenceConflict, ThresholdField


class RecordOutcome(str, Enum):
    """What happened to one upstream record."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass
class ImportCriteria:
    """
    Selects the upstream records an import run processes.

    Either a search term, or rating thresholds with an optional
    release-date lower bound.
    """

    search_term: str | None = None
    min_votes: int | None = None
    min_rating: float | None = None
    since: datetime | None = None
    max_results: int | None = None
    main_games_only: bool = False

    def __post_init__(self) -> None:
        if self.search_term is None and (self.min_votes is None or self.min_rating is None):
            raise ValueError("Criteria need a search term or both min_votes and min_rating")
        if self.search_term is not None and not self.search_term.strip():
            raise ValueError("Search term must not be empty")

    @classmethod
    def for_search(cls, term: str, *, max_results: int | None = None) -> "ImportCriteria":
        return cls(search_term=term, max_results=max_results)

    @classmethod
    def for_quality(
        cls,
        *,
        min_votes: int,
        min_rating: float,
        recency_days: int | None = None,
        now: datetime | None = None,
        max_results: int | None = None,
        main_games_only: bool = False,
    ) -> "ImportCriteria":
        """Thresholds, optionally limited to games released in the last ``recency_days``."""
        since = None
        if recency_days is not None:
            if now is None:
                raise ValueError("now is required with recency_days")
            since = now - timedelta(days=recency_days)
        return cls(
            min_votes=min_votes,
            min_rating=min_rating,
            since=since,
            max_results=max_results,
            main_games_only=main_games_only,
        )

    def describe(self) -> dict[str, Any]:
        """Criteria as log context."""
        if self.search_term is not None:
            return {"search_term": self.search_term, "max_results": self.max_results}
        return {
            "min_votes": self.min_votes,
            "min_rating": self.min_rating,
            "since": self.since.isoformat() if self.since else None,
            "max_results": self.max_results,
        }


@dataclass
class ImportReport:
    """Counters and error details of one run."""

    run_id: UUID
    started_at: datetime
    completed_at: datetime | None = None
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: list[dict[str, Any]] = field(default_factory=list)
    aborted: bool = False
    abort_reason: str | None = None

    @property
    def processed(self) -> int:
        """Records handled; a saved record with a failed sub-resource counts once."""
        dropped = sum(1 for detail in self.error_details if not detail["persisted"])
        return self.created + self.updated + self.skipped + dropped

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def count(self, outcome: RecordOutcome) -> None:
        if outcome is RecordOutcome.CREATED:
            self.created += 1
        elif outcome is RecordOutcome.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1

    def record_error(
        self, external_id: int | None, error: Exception, *, persisted: bool = False
    ) -> None:
        self.errors += 1
        self.error_details.append(
            {
                "external_id": external_id,
                "error_type": type(error).__name__,
                "error": str(error),
                "persisted": persisted,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "error_details": self.error_details,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
        }


class SyncAbortedError(Exception):
    """Raised when a run stops early; carries the partial report."""

    def __init__(self, message: str, report: ImportReport) -> None:
        super().__init__(message)
        self.report = report


def _is_slug_conflict(error: BaseException) -> bool:
    return isinstance(error, PersistenceConflict) and error.field == "slug"


class CatalogSyncEngine:
    """
    Reconciles upstream catalog records into the local store.

    Merge policy, per field:

    - refreshed whenever upstream has a value: title, ratings, rating
      count, follows, hypes, category, release date, age rating,
      derived ratings, platform/genre/mode/perspective lists,
      alternative titles, plus new artworks and videos
    - filled only while empty locally: cover, screenshots, summary,
      developer, publisher
    - ``last_popularity_update`` is stamped on every pass

    Example:
        >>> engine = CatalogSyncEngine(client, repository)
        >>> report = await engine.import_batch(
        ...     ImportCriteria.for_quality(min_votes=80, min_rating=75)
        ... )
    """

    def __init__(
        self,
        client: CatalogClient,
        repository: GameRepository,
        *,
        settings: Settings | None = None,
        slugs: SlugAllocator | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._repository = repository
        self._settings = settings or get_settings()
        self._clock = clock or SystemClock()
        self._slugs = slugs or SlugAllocator(
            repository,
            probe_limit=self._settings.sync.slug_probe_limit,
            clock=self._clock,
        )
        self._maintenance = CatalogMaintenance(
            repository, sync=self._settings.sync, slugs=self._slugs, clock=self._clock
        )
        self._sleep = sleep
        self._logger = get_logger(__name__, component="sync")

    def _new_report(self) -> ImportReport:
        return ImportReport(run_id=uuid4(), started_at=self._clock.now())

    # ------------------------------------------------------------------
    # Batch import
    # ------------------------------------------------------------------

    def _pages(self, criteria: ImportCriteria) -> AsyncIterator[list[IGDBGame]]:
        if criteria.search_term is not None:
            return self._client.iter_search(criteria.search_term, criteria.max_results)
        return self._client.iter_by_criteria(
            min_votes=criteria.min_votes,  # type: ignore[arg-type]
            min_rating=criteria.min_rating,  # type: ignore[arg-type]
            since=criteria.since,
            max_results=criteria.max_results,
            main_games_only=criteria.main_games_only,
        )

    async def import_batch(
        self,
        criteria: ImportCriteria,
        *,
        on_progress: Callable[[ImportReport], None] | None = None,
    ) -> ImportReport:
        """
        Import every record matching ``criteria``.

        Args:
            criteria: Search term or quality thresholds
            on_progress: Called with the running report after each record

        Returns:
            ImportReport: created / updated / skipped / errors counts

        Raises:
            SyncAbortedError: Authentication or page request failed; the
                exception carries the partial report
        """
        report = self._new_report()
        self._slugs.reset()
        self._logger.info("Starting import", run_id=str(report.run_id), **criteria.describe())

        try:
            async for page in self._pages(criteria):
                for record in page:
                    await self._process(record, report)
                    if on_progress:
                        on_progress(report)
        except ExtractionError as e:
            report.completed_at = self._clock.now()
            report.aborted = True
            report.abort_reason = str(e)
            self._logger.error(
                "Import aborted",
                run_id=str(report.run_id),
                error_type=type(e).__name__,
                error=str(e),
                created=report.created,
                updated=report.updated,
            )
            raise SyncAbortedError(f"Import aborted: {e}", report) from e

        report.completed_at = self._clock.now()
        self._logger.info(
            "Import complete",
            run_id=str(report.run_id),
            duration_seconds=report.duration_seconds,
            created=report.created,
            updated=report.updated,
            skipped=report.skipped,
            errors=report.errors,
        )
        return report

    async def import_by_search_term(
        self, term: str, max_results: int | None = None
    ) -> list[Game]:
        """
        Import the results of one search.

        Page failures end the scan early instead of aborting; records
        fetched before the failure are still imported.

        Returns:
            list[Game]: Stored games, in search order
        """
        records = await self._client.search_all(
            term, max_results or self._settings.sync.max_search_results
        )
        report = self._new_report()
        self._slugs.reset()

        games: list[Game] = []
        for record in records:
            game = await self._process(record, report)
            if game is not None:
                games.append(game)

        report.completed_at = self._clock.now()
        self._logger.info(
            "Search import complete",
            search_term=term,
            fetched=len(records),
            created=report.created,
            updated=report.updated,
            errors=report.errors,
        )
        return games

    async def _process(self, record: IGDBGame, report: ImportReport) -> Game | None:
        """Sync one record, counting the outcome; only auth failures escape."""
        try:
            outcome, game = await self._sync_record(record, report)
        except AuthError:
            raise
        except (ExtractionError, PersistenceConflict, ValueError) as e:
            self._logger.warning(
                "Record failed",
                external_id=record.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            report.record_error(record.id, e)
            return None

        report.count(outcome)
        return game

    async def _sync_record(
        self, record: IGDBGame, report: ImportReport
    ) -> tuple[RecordOutcome, Game | None]:
        title = record.name.strip()
        if not title:
            self._logger.debug("Skipping record without a name", external_id=record.id)
            return RecordOutcome.SKIPPED, None

        now = self._clock.now()
        existing = self._repository.find_by_external_id(record.id)
        if existing is None:
            game = Game(external_id=record.id, title=title, created_at=now, updated_at=now)
            before = None
        else:
            game = existing
            before = existing.content_snapshot()

        self._merge(game, record)

        if not game.screenshots and record.screenshots:
            try:
                for url in await self._client.get_screenshots(record.screenshots):
                    game.add_screenshot(url)
            except AuthError:
                raise
            except ExtractionError as e:
                # Saved without screenshots; backfill picks them up later
                self._logger.warning(
                    "Screenshot fetch failed", external_id=record.id, error=str(e)
                )
                report.record_error(record.id, e, persisted=True)

        needs_slug = self._slugs.is_stale(game.slug, game.title)
        changed = before is None or needs_slug or game.content_snapshot() != before

        game.last_popularity_update = now
        if changed:
            game.updated_at = now

        saved = self._persist(game, allocate_slug=needs_slug)

        if before is None:
            self._logger.debug("Created game", external_id=record.id, slug=saved.slug)
            return RecordOutcome.CREATED, saved
        if changed:
            return RecordOutcome.UPDATED, saved
        return RecordOutcome.SKIPPED, saved

    def _merge(self, game: Game, record: IGDBGame) -> None:
        """Apply the merge policy described on the class."""
        if record.name.strip():
            game.title = record.name.strip()

        # Refreshed whenever upstream has a value
        for attr, value in (
            ("total_rating", record.total_rating),
            ("total_rating_count", record.total_rating_count),
            ("follows", record.follows),
            ("hypes", record.hypes),
            ("release_date", record.release_date),
            ("age_rating", record.age_rating),
        ):
            if value is not None:
                setattr(game, attr, value)

        if record.category is not None:
            game.category = GameCategory.from_code(record.category)
        if record.derived_ratings:
            game.derived_ratings = dict(record.derived_ratings)

        for attr, values in (
            ("platforms", record.platform_names),
            ("genres", record.genre_names),
            ("game_modes", record.game_mode_names),
            ("perspectives", record.perspective_names),
            ("alternative_titles", record.alternative_titles),
        ):
            if values:
                setattr(game, attr, values)

        for artwork in record.artworks:
            if artwork.url:
                game.add_artwork(artwork.url, kind="artwork")
        for video in record.videos:
            game.add_video(video.video_id, name=video.name, url=video.watch_url)

        # Filled only while empty locally
        if not game.cover_url and record.cover_url:
            game.cover_url = record.cover_url
        if not game.summary and record.summary:
            game.summary = record.summary
        if not game.developer and record.developer:
            game.developer = record.developer
        if not game.publisher and record.publisher:
            game.publisher = record.publisher

    def _persist(self, game: Game, *, allocate_slug: bool) -> Game:
        """
        Upsert ``game``, re-allocating its slug after a slug conflict.

        Raises:
            PersistenceConflict: Conflict persisted past the retry budget,
                or the conflict was not on the slug
        """
        retrying = Retrying(
            retry=retry_if_exception(_is_slug_conflict),
            stop=stop_after_attempt(self._settings.retry.max_attempts),
            before_sleep=self._log_conflict_retry,
            reraise=True,
        )
        saved: Game | None = None
        for attempt in retrying:
            with attempt:
                if allocate_slug or attempt.retry_state.attempt_number > 1:
                    game.slug = self._slugs.generate(game.title, game.id)
                try:
                    saved = self._repository.upsert(game)
                except PersistenceConflict as e:
                    if e.field == "slug":
                        self._slugs.block(str(e.value))
                    raise

        assert saved is not None
        self._slugs.register(saved.slug, saved.id)  # type: ignore[arg-type]
        return saved

    def _log_conflict_retry(self, retry_state: RetryCallState) -> None:
        self._logger.warning(
            "Slug conflict, re-allocating",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    # ------------------------------------------------------------------
    # Targeted imports
    # ------------------------------------------------------------------

    async def ensure_title(self, title: str) -> Game | None:
        """
        Make sure a game named ``title`` is in the catalog.

        A stored game with the same (case-insensitive) title is returned
        as is. Otherwise the first five search results are checked for an
        exact name match, falling back to the top result.

        Returns:
            Game | None: Stored game, or None when upstream has nothing
        """
        wanted = title.casefold().strip()
        for game in self._repository.search_by_title(title):
            if game.title.casefold() == wanted:
                return game

        try:
            candidates = await self._client.search(title, limit=5)
        except AuthError:
            raise
        except ExtractionError as e:
            self._logger.warning("Safety-net search failed", title=title, error=str(e))
            return None

        if not candidates:
            self._logger.warning("Safety-net title not found upstream", title=title)
            return None

        record = next((c for c in candidates if c.name.casefold() == wanted), candidates[0])
        report = self._new_report()
        game = await self._process(record, report)
        if game is not None:
            self._logger.info("Safety-net title imported", title=title, slug=game.slug)
        return game

    async def ensure_titles(self, titles: Sequence[str] | None = None) -> dict[str, Game | None]:
        """Run ``ensure_title`` for each title (defaults to the configured safety net)."""
        titles = titles if titles is not None else self._settings.sync.safety_net_titles
        self._slugs.reset()
        return {title: await self.ensure_title(title) for title in titles}

    async def backfill_screenshots(self) -> ImportReport:
        """
        Fetch screenshots for stored games that have none.

        Raises:
            SyncAbortedError: On authentication failure
        """
        report = self._new_report()
        targets = [
            game
            for game in self._repository.all()
            if game.external_id is not None and not game.screenshots
        ]
        self._logger.info("Starting screenshot backfill", games=len(targets))

        for index, game in enumerate(targets):
            if index:
                await self._sleep(self._settings.igdb.page_delay_seconds)
            try:
                details = await self._client.get_details(game.external_id)  # type: ignore[arg-type]
                urls = await self._client.get_screenshots(details.screenshots)
            except AuthError as e:
                report.completed_at = self._clock.now()
                report.aborted = True
                report.abort_reason = str(e)
                raise SyncAbortedError(f"Screenshot backfill aborted: {e}", report) from e
            except ExtractionError as e:
                self._logger.warning(
                    "Screenshot fetch failed", external_id=game.external_id, error=str(e)
                )
                report.record_error(game.external_id, e)
                continue

            added = [url for url in urls if game.add_screenshot(url)]
            if not added:
                report.count(RecordOutcome.SKIPPED)
                continue

            game.updated_at = self._clock.now()
            try:
                self._repository.upsert(game)
            except PersistenceConflict as e:
                report.record_error(game.external_id, e)
                continue
            report.count(RecordOutcome.UPDATED)

        report.completed_at = self._clock.now()
        self._logger.info(
            "Screenshot backfill complete",
            updated=report.updated,
            skipped=report.skipped,
            errors=report.errors,
        )
        return report

    # ------------------------------------------------------------------
    # Read-only search
    # ------------------------------------------------------------------

    async def search_without_persist(self, term: str, limit: int = 10) -> list[SearchResult]:
        """
        Search upstream and shape results for display; storage is untouched.

        Results are deduplicated by external id, keeping upstream order.
        """
        records = await self._client.search(term, limit=limit)
        seen: set[int] = set()
        results: list[SearchResult] = []
        for record in records:
            if record.id in seen:
                continue
            seen.add(record.id)
            results.append(self._to_search_result(record))
        return results

    @staticmethod
    def _to_search_result(record: IGDBGame) -> SearchResult:
        title = record.name.strip() or "Unknown"
        return SearchResult(
            external_id=record.id,
            title=title,
            slug=SlugAllocator.base_slug(title),
            summary=record.summary,
            cover_url=record.cover_url,
            release_date=record.release_date,
            developer=record.developer,
            publisher=record.publisher,
            platforms=record.platform_names,
            genres=record.genre_names,
            game_modes=record.game_mode_names,
            perspectives=record.perspective_names,
            category=GameCategory.from_code(record.category),
            total_rating=record.total_rating,
            total_rating_count=record.total_rating_count,
            derived_ratings=dict(record.derived_ratings),
            is_persisted=False,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def purge_low_quality(
        self,
        threshold: float | None = None,
        field: ThresholdField = "total_rating_count",
    ) -> int:
        """Delete games whose ``field`` is below ``threshold``; see ``CatalogMaintenance``."""
        return self._maintenance.purge_low_quality(threshold, field)

    def cleanup_slugs(self) -> SlugCleanupReport:
        """Strip leftover numeric suffixes from stored slugs; see ``CatalogMaintenance``."""
        return self._maintenance.cleanup_slugs()
