"""
Per-axis ratings derived from the upstream aggregate score.

IGDB only publishes one aggregate score. The catalog shows five
axes, each starting at that score and nudged by simple rules keyed
on genre, platform and category. The rule table is plain data so it
can be tuned or replaced without touching the computation.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from checkpoint_catalog.ingestion.contracts import IGDBGame

RATING_AXES = ("gameplay", "story", "graphics", "sound", "replayability")

RuleKind = Literal["genre", "platform", "category"]


@dataclass(frozen=True)
class RatingRule:
    """Adjust ``axis`` by ``delta`` points when the record has ``match``."""

    axis: str
    kind: RuleKind
    match: str | int
    delta: float


# Genre and platform names as IGDB spells them; category codes as IGDB numbers them.
DEFAULT_RATING_RULES: tuple[RatingRule, ...] = (
    # story
    RatingRule("story", "genre", "Role-playing (RPG)", 5),
    RatingRule("story", "genre", "Adventure", 5),
    RatingRule("story", "genre", "Visual Novel", 4),
    RatingRule("story", "genre", "Point-and-click", 2),
    RatingRule("story", "genre", "Sport", -10),
    RatingRule("story", "genre", "Racing", -10),
    RatingRule("story", "genre", "Fighting", -5),
    RatingRule("story", "genre", "Puzzle", -3),
    RatingRule("story", "category", 2, 2),
    RatingRule("story", "category", 6, 3),
    # gameplay
    RatingRule("gameplay", "genre", "Shooter", 3),
    RatingRule("gameplay", "genre", "Platform", 3),
    RatingRule("gameplay", "genre", "Fighting", 3),
    RatingRule("gameplay", "genre", "Hack and slash/Beat 'em up", 2),
    RatingRule("gameplay", "genre", "Racing", 2),
    RatingRule("gameplay", "genre", "Visual Novel", -5),
    # graphics
    RatingRule("graphics", "platform", "PlayStation 5", 3),
    RatingRule("graphics", "platform", "Xbox Series X|S", 3),
    RatingRule("graphics", "platform", "PC (Microsoft Windows)", 2),
    RatingRule("graphics", "genre", "Indie", -3),
    RatingRule("graphics", "category", 5, -5),
    # sound
    RatingRule("sound", "genre", "Music", 5),
    RatingRule("sound", "genre", "Adventure", 2),
    RatingRule("sound", "genre", "Visual Novel", 2),
    # replayability
    RatingRule("replayability", "genre", "Strategy", 5),
    RatingRule("replayability", "genre", "Simulator", 3),
    RatingRule("replayability", "genre", "Sport", 3),
    RatingRule("replayability", "genre", "Visual Novel", -5),
    RatingRule("replayability", "genre", "Point-and-click", -3),
    RatingRule("replayability", "category", 1, -5),
    RatingRule("replayability", "category", 3, 3),
    RatingRule("replayability", "category", 6, -5),
)


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def _applies(rule: RatingRule, genres: set[str], platforms: set[str], category: int | None) -> bool:
    if rule.kind == "genre":
        return rule.match in genres
    if rule.kind == "platform":
        return rule.match in platforms
    return category is not None and rule.match == category


def compute_derived_ratings(
    record: IGDBGame,
    rules: Iterable[RatingRule] = DEFAULT_RATING_RULES,
) -> dict[str, float]:
    """
    Compute per-axis scores for a record.

    Args:
        record: Validated upstream record
        rules: Adjustment table (defaults to ``DEFAULT_RATING_RULES``)

    Returns:
        dict[str, float]: Axis name to score in [0, 100], rounded to one
        decimal. Empty when the record has no aggregate score.
    """
    if record.total_rating is None:
        return {}

    genres = set(record.genre_names)
    platforms = set(record.platform_names)
    scores = {axis: float(record.total_rating) for axis in RATING_AXES}

    for rule in rules:
        if rule.axis in scores and _applies(rule, genres, platforms, record.category):
            scores[rule.axis] += rule.delta

    return {axis: round(_clamp(score), 1) for axis, score in scores.items()}
