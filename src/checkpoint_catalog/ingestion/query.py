"""IGDB query language (APICalypse) builder."""

from collections.abc import Iterable
from dataclasses import dataclass, field

GAME_FIELDS = (
    "name",
    "slug",
    "summary",
    "category",
    "first_release_date",
    "genres.name",
    "platforms.name",
    "game_modes.name",
    "player_perspectives.name",
    "alternative_names.name",
    "involved_companies.company.name",
    "involved_companies.developer",
    "involved_companies.publisher",
    "age_ratings.category",
    "age_ratings.rating",
    "total_rating",
    "total_rating_count",
    "follows",
    "hypes",
    "cover.url",
    "cover.image_id",
    "screenshots",
    "artworks.url",
    "artworks.image_id",
    "videos.video_id",
    "videos.name",
)

SCREENSHOT_FIELDS = ("url", "image_id")


def quote(value: str) -> str:
    """Quote a string literal for use in a query body."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def id_list(ids: Iterable[int]) -> str:
    """Render ids as an IGDB tuple, e.g. ``(1,2,3)``."""
    return "(" + ",".join(str(int(i)) for i in ids) + ")"


@dataclass
class IGDBQuery:
    """
    One request body for an IGDB endpoint.

    Example:
        >>> IGDBQuery(search="zelda", limit=10).render()
        'fields *; search "zelda"; limit 10;'
    """

    fields: tuple[str, ...] = ("*",)
    search: str | None = None
    where: list[str] = field(default_factory=list)
    sort: str | None = None
    limit: int | None = None
    offset: int | None = None

    def render(self) -> str:
        parts = [f"fields {','.join(self.fields)};"]
        if self.search is not None:
            parts.append(f"search {quote(self.search)};")
        if self.where:
            parts.append(f"where {' & '.join(self.where)};")
        # IGDB rejects sort combined with search
        if self.sort and self.search is None:
            parts.append(f"sort {self.sort};")
        if self.limit is not None:
            parts.append(f"limit {self.limit};")
        if self.offset:
            parts.append(f"offset {self.offset};")
        return " ".join(parts)
