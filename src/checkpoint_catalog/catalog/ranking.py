"""
Ranked game lists built from the local catalog.

Backs the "top 100" and "top of the year" views: filter stored games
by quality thresholds, sort best first, collapse title variants.
"""

from datetime import date, datetime

from checkpoint_catalog.catalog.dedup import DeduplicationResolver
from checkpoint_catalog.catalog.models import Game, GameCategory
from checkpoint_catalog.storage.base import GameRepository


def ranking_key(game: Game) -> tuple[float, int, int]:
    """Sort key: rating, then rating count, then follows, all descending."""
    return (
        -(game.total_rating or 0.0),
        -(game.total_rating_count or 0),
        -(game.follows or 0),
    )


def top_games(
    repository: GameRepository,
    *,
    min_votes: int,
    min_rating: float,
    limit: int = 100,
    since: date | datetime | None = None,
    main_games_only: bool = True,
    deduplicate: bool = True,
    resolver: DeduplicationResolver | None = None,
) -> list[Game]:
    """
    Best stored games meeting the thresholds.

    Args:
        repository: Catalog store
        min_votes: Minimum rating count
        min_rating: Minimum aggregate rating
        limit: Maximum games returned
        since: Only games released on or after this date
        main_games_only: Keep main games and games without a category
        deduplicate: Collapse title variants, keeping the best-ranked one
        resolver: Resolver to use (defaults to the built-in suffix table)

    Returns:
        list[Game]: At most ``limit`` games, best first
    """
    if isinstance(since, datetime):
        since = since.date()

    candidates = [
        game
        for game in repository.all()
        if game.total_rating is not None
        and game.total_rating >= min_rating
        and (game.total_rating_count or 0) >= min_votes
        and (since is None or (game.release_date is not None and game.release_date >= since))
        and (not main_games_only or game.category in (None, GameCategory.MAIN_GAME))
    ]
    candidates.sort(key=ranking_key)

    if deduplicate:
        candidates = (resolver or DeduplicationResolver()).dedupe(candidates)

    return candidates[:limit]
