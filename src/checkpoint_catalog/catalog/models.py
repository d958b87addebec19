"""
Catalog domain models.

``Game`` is the aggregate persisted through the storage port. It
owns its screenshots, artworks and videos; each collection is keyed
by content so re-importing the same media is a no-op.
"""

from datetime import date, datetime, timezone
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameCategory(IntEnum):
    """IGDB game category codes the catalog understands."""

    MAIN_GAME = 0
    DLC_ADDON = 1
    EXPANSION = 2
    BUNDLE = 3
    STANDALONE_EXPANSION = 4
    MOD = 5
    EPISODE = 6
    SEASON = 7

    @classmethod
    def from_code(cls, code: int | None) -> "GameCategory | None":
        """Map an upstream code, returning None for codes outside the enum."""
        if code is None:
            return None
        try:
            return cls(code)
        except ValueError:
            return None


class Screenshot(BaseModel):
    """Screenshot owned by a game."""

    url: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)


class Artwork(BaseModel):
    """Artwork (key art, wallpaper) owned by a game."""

    url: str = Field(..., min_length=1)
    title: str | None = None
    kind: str | None = Field(default=None, description="e.g. 'artwork', 'wallpaper'")
    created_at: datetime = Field(default_factory=_utcnow)


class Video(BaseModel):
    """Trailer or gameplay video owned by a game."""

    video_id: str = Field(..., min_length=1, description="YouTube video identifier")
    name: str | None = None
    url: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


# Ignored when deciding whether a sync changed a game
_TIMESTAMP_FIELDS = {"created_at", "updated_at", "last_popularity_update"}


class Game(BaseModel):
    """
    Game aggregate.

    Rating fields are validated on assignment, so an out-of-range
    value can never be stored.
    """

    model_config = ConfigDict(validate_assignment=True)

    # Identity
    id: int | None = Field(default=None, description="Internal id, assigned by storage")
    external_id: int | None = Field(default=None, gt=0, description="IGDB id")
    title: str = Field(..., min_length=1)
    slug: str | None = None

    # Descriptive
    summary: str | None = None
    release_date: date | None = None
    developer: str | None = None
    publisher: str | None = None
    platforms: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    game_modes: list[str] = Field(default_factory=list)
    perspectives: list[str] = Field(default_factory=list)
    alternative_titles: list[str] = Field(default_factory=list)
    category: GameCategory | None = None
    age_rating: str | None = None
    cover_url: str | None = None

    # Ratings and popularity
    total_rating: float | None = Field(default=None, ge=0, le=100)
    total_rating_count: int | None = Field(default=None, ge=0)
    follows: int | None = Field(default=None, ge=0)
    hypes: int | None = Field(default=None, ge=0)
    derived_ratings: dict[str, float] = Field(default_factory=dict)

    # Owned media
    screenshots: list[Screenshot] = Field(default_factory=list)
    artworks: list[Artwork] = Field(default_factory=list)
    videos: list[Video] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    last_popularity_update: datetime | None = None

    def add_screenshot(self, url: str) -> bool:
        """Attach a screenshot unless one with the same URL exists."""
        if any(s.url == url for s in self.screenshots):
            return False
        self.screenshots.append(Screenshot(url=url))
        return True

    def add_artwork(self, url: str, *, title: str | None = None, kind: str | None = None) -> bool:
        """Attach an artwork unless one with the same URL exists."""
        if any(a.url == url for a in self.artworks):
            return False
        self.artworks.append(Artwork(url=url, title=title, kind=kind))
        return True

    def add_video(self, video_id: str, *, name: str | None = None, url: str | None = None) -> bool:
        """Attach a video unless one with the same video id exists."""
        if any(v.video_id == video_id for v in self.videos):
            return False
        self.videos.append(Video(video_id=video_id, name=name, url=url))
        return True

    @property
    def media_count(self) -> int:
        """Number of owned media rows."""
        return len(self.screenshots) + len(self.artworks) + len(self.videos)

    def content_snapshot(self) -> dict[str, Any]:
        """Everything except timestamps, for change detection."""
        data = self.model_dump(exclude=_TIMESTAMP_FIELDS)
        for key in ("screenshots", "artworks", "videos"):
            data[key] = [
                {k: v for k, v in item.items() if k != "created_at"} for item in data[key]
            ]
        return data


class SearchResult(BaseModel):
    """Flat, display-ready game record returned by searches."""

    external_id: int | None = None
    title: str
    slug: str | None = None
    summary: str | None = None
    cover_url: str | None = None
    release_date: date | None = None
    developer: str | None = None
    publisher: str | None = None
    platforms: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    game_modes: list[str] = Field(default_factory=list)
    perspectives: list[str] = Field(default_factory=list)
    category: GameCategory | None = None
    total_rating: float | None = None
    total_rating_count: int | None = None
    derived_ratings: dict[str, float] = Field(default_factory=dict)
    is_persisted: bool = False

    @classmethod
    def from_game(cls, game: Game) -> "SearchResult":
        """Shape a stored aggregate."""
        return cls(
            external_id=game.external_id,
            title=game.title,
            slug=game.slug,
            summary=game.summary,
            cover_url=game.cover_url,
            release_date=game.release_date,
            developer=game.developer,
            publisher=game.publisher,
            platforms=list(game.platforms),
            genres=list(game.genres),
            game_modes=list(game.game_modes),
            perspectives=list(game.perspectives),
            category=game.category,
            total_rating=game.total_rating,
            total_rating_count=game.total_rating_count,
            derived_ratings=dict(game.derived_ratings),
            is_persisted=True,
        )
