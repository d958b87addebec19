"""
Storage-only catalog maintenance.

Bulk jobs that work on stored games alone and never call upstream,
so they run without IGDB credentials.
"""

from dataclasses import dataclass, field
from typing import Any

from checkpoint_catalog.catalog.slugs import SlugAllocator
from checkpoint_catalog.config import SyncConfig
from checkpoint_catalog.ingestion.utils.clock import Clock, SystemClock
from checkpoint_catalog.logger import get_logger
from checkpoint_catalog.storage.base import GameRepository, PersistenceConflict, ThresholdField


@dataclass
class SlugCleanupReport:
    """Result of a bulk slug cleanup."""

    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    changes: list[dict[str, Any]] = field(default_factory=list)


class CatalogMaintenance:
    """
    Purges and slug cleanup over a game repository.

    Example:
        >>> maintenance = CatalogMaintenance(JsonFileGameRepository(path))
        >>> maintenance.purge_low_quality(50)
    """

    def __init__(
        self,
        repository: GameRepository,
        *,
        sync: SyncConfig | None = None,
        slugs: SlugAllocator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._repository = repository
        self._sync = sync or SyncConfig()
        self._clock = clock or SystemClock()
        self._slugs = slugs or SlugAllocator(
            repository,
            probe_limit=self._sync.slug_probe_limit,
            clock=self._clock,
        )
        self._logger = get_logger(__name__, component="maintenance")

    def purge_low_quality(
        self,
        threshold: float | None = None,
        field: ThresholdField = "total_rating_count",
    ) -> int:
        """
        Delete games whose ``field`` is below ``threshold`` or unknown.

        Returns:
            int: Games deleted (their media goes with them)
        """
        threshold = self._sync.purge_threshold if threshold is None else threshold
        deleted = self._repository.bulk_delete_below_threshold(field, threshold)
        self._logger.info("Purged low-quality games", field=field, threshold=threshold, deleted=deleted)
        return deleted

    def cleanup_slugs(self) -> SlugCleanupReport:
        """Strip leftover numeric suffixes from every stored slug where possible."""
        result = SlugCleanupReport()
        self._slugs.reset()

        for game in sorted(self._repository.all(), key=lambda g: g.id or 0):
            old_slug = game.slug or ""
            new_slug = self._slugs.cleanup(old_slug, game.id, title=game.title)
            if new_slug == old_slug:
                result.unchanged += 1
                continue

            game.slug = new_slug
            game.updated_at = self._clock.now()
            try:
                self._repository.upsert(game)
            except PersistenceConflict as e:
                self._slugs.block(new_slug)
                self._slugs.register(old_slug, game.id)
                self._logger.warning("Slug cleanup conflict", game_id=game.id, error=str(e))
                result.errors += 1
                continue

            result.updated += 1
            result.changes.append({"game_id": game.id, "from": old_slug, "to": new_slug})

        self._logger.info(
            "Slug cleanup complete",
            updated=result.updated,
            unchanged=result.unchanged,
            errors=result.errors,
        )
        return result
