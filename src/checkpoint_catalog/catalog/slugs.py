"""
Slug allocation.

Slugs are derived from titles with python-slugify and kept globally
unique. A candidate only collides with a slug held by a *different*
game, so regenerating a game's own slug is a no-op.
"""

import random
import re

from slugify import slugify

from checkpoint_catalog.ingestion.utils.clock import Clock, SystemClock
from checkpoint_catalog.logger import get_logger
from checkpoint_catalog.storage.base import GameRepository

# Trailing "-<digits>" left behind by earlier collision handling
SLUG_SUFFIX_PATTERN = re.compile(r"^(?P<base>.+)-(?P<suffix>\d+)$")

FALLBACK_BASE = "game"

_BLOCKED = object()


class SlugAllocator:
    """
    Allocates unique slugs against the repository and the current run.

    Slugs handed out during a run are remembered together with their
    owner (internal game id, or None for a game not stored yet), so
    two new games in the same batch cannot receive the same slug even
    before either is persisted.
    """

    def __init__(
        self,
        repository: GameRepository,
        *,
        probe_limit: int = 100,
        suffix_pattern: re.Pattern[str] = SLUG_SUFFIX_PATTERN,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository
        self._probe_limit = probe_limit
        self._suffix_pattern = suffix_pattern
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()
        self._allocated: dict[str, object] = {}
        self._logger = get_logger(__name__, component="slugs")

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget in-run allocations (call at the start of a batch)."""
        self._allocated.clear()

    def register(self, slug: str, owner: int | None) -> None:
        """Record that ``slug`` now belongs to ``owner``."""
        self._allocated[slug] = owner

    def block(self, slug: str) -> None:
        """Mark ``slug`` as taken by someone else for the rest of the run."""
        self._allocated[slug] = _BLOCKED

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    @staticmethod
    def base_slug(title: str) -> str:
        """Transliterated lower-kebab form of a title."""
        return slugify(title) or FALLBACK_BASE

    def _is_taken(self, candidate: str, existing_id: int | None) -> bool:
        if candidate in self._allocated:
            owner = self._allocated[candidate]
            if owner is _BLOCKED or owner is None or owner != existing_id:
                return True

        holder = self._repository.find_by_slug(candidate)
        return holder is not None and (existing_id is None or holder.id != existing_id)

    def _fallback_suffix(self) -> str:
        return f"{int(self._clock.now().timestamp())}{self._rng.randint(100, 999)}"

    def allocate(self, base: str, existing_id: int | None = None) -> str:
        """
        Find a free slug starting from ``base``.

        Tries ``base``, then ``base-2``, ``base-3`` ... up to the probe
        limit, then a time-and-jitter suffix.

        Args:
            base: Already slugified candidate
            existing_id: Internal id of the game the slug is for

        Returns:
            str: Slug not held by any other game
        """
        candidate = base
        suffix = 2
        attempts = 0
        while self._is_taken(candidate, existing_id):
            attempts += 1
            if attempts >= self._probe_limit:
                candidate = f"{base}-{self._fallback_suffix()}"
                while self._is_taken(candidate, existing_id):
                    candidate = f"{base}-{self._fallback_suffix()}"
                self._logger.warning(
                    "Slug probe limit reached, using fallback suffix",
                    base=base,
                    slug=candidate,
                    attempts=attempts,
                )
                break
            candidate = f"{base}-{suffix}"
            suffix += 1

        self.register(candidate, existing_id)
        return candidate

    def generate(self, title: str, existing_id: int | None = None) -> str:
        """
        Slug for ``title``, unique across the catalog.

        Args:
            title: Game title
            existing_id: Internal id when the game is already stored

        Returns:
            str: Allocated slug
        """
        return self.allocate(self.base_slug(title), existing_id)

    def is_stale(self, slug: str | None, title: str) -> bool:
        """
        True when ``slug`` no longer derives from ``title``.

        A slug is current when it equals the title's base slug or the
        base slug with a numeric collision suffix.
        """
        if not slug:
            return True
        base = self.base_slug(title)
        if slug == base:
            return False
        match = self._suffix_pattern.match(slug)
        return match is None or match.group("base") != base

    def cleanup(self, slug: str, existing_id: int | None = None, title: str | None = None) -> str:
        """
        Strip a numeric collision suffix and re-allocate from the base.

        A slug that is exactly the title's own slug (``persona-5`` for
        "Persona 5") is kept.

        Args:
            slug: Current slug
            existing_id: Internal id of the owning game
            title: Owning game's title, when known

        Returns:
            str: Cleaned slug (unchanged when nothing to strip)
        """
        match = self._suffix_pattern.match(slug)
        if match is None or (title is not None and self.base_slug(title) == slug):
            self.register(slug, existing_id)
            return slug

        return self.allocate(match.group("base"), existing_id)
