"""
Data contracts for IGDB API responses.

These Pydantic models define the expected structure of records
returned by the ``/games`` and ``/screenshots`` endpoints and the
Twitch OAuth token endpoint.
"""

from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

# IGDB age rating organizations and rating codes
_AGE_RATING_BOARDS = {1: "ESRB", 2: "PEGI"}
_AGE_RATING_LABELS = {
    1: "3",
    2: "7",
    3: "12",
    4: "16",
    5: "18",
    6: "RP",
    7: "EC",
    8: "E",
    9: "E10",
    10: "T",
    11: "M",
    12: "AO",
}


class TokenResponse(BaseModel):
    """Twitch OAuth client-credentials response."""

    access_token: str = Field(..., min_length=1)
    expires_in: int = Field(default=0, ge=0, description="Lifetime in seconds")
    token_type: str = Field(default="bearer")


class NamedRef(BaseModel):
    """Expanded reference carrying only a name (genre, platform, mode, ...)."""

    id: int
    name: str = ""


class ImageRef(BaseModel):
    """Cover, screenshot or artwork image."""

    id: int
    url: str | None = None
    image_id: str | None = None


class VideoRef(BaseModel):
    """YouTube video attached to a game."""

    id: int
    video_id: str = Field(..., min_length=1, description="YouTube video identifier")
    name: str | None = None

    @property
    def watch_url(self) -> str:
        """Canonical YouTube URL for this video."""
        return f"https://www.youtube.com/watch?v={self.video_id}"


class InvolvedCompany(BaseModel):
    """Company credited on a game."""

    id: int
    company: NamedRef | None = None
    developer: bool = False
    publisher: bool = False


class AgeRatingRef(BaseModel):
    """Age rating from a rating board."""

    id: int
    category: int | None = Field(default=None, description="Rating board (1=ESRB, 2=PEGI)")
    rating: int | None = Field(default=None, description="Rating code within the board")

    @property
    def label(self) -> str | None:
        """Human readable label such as 'PEGI 18' or 'ESRB M'."""
        board = _AGE_RATING_BOARDS.get(self.category or 0)
        value = _AGE_RATING_LABELS.get(self.rating or 0)
        if board is None or value is None:
            return None
        return f"{board} {value}"


class IGDBGame(BaseModel):
    """
    Game record from the IGDB ``/games`` endpoint.

    Screenshots are requested as bare ids and resolved through
    a separate ``/screenshots`` call.
    """

    # Identifiers
    id: int = Field(..., gt=0, description="IGDB game ID")
    name: str = Field(default="", description="Game title")
    slug: str | None = Field(default=None, description="IGDB's own slug (informational)")

    # Description
    summary: str | None = None

    # Classification
    category: int | None = Field(default=None, description="IGDB category code (0 = main game)")
    first_release_date: int | None = Field(default=None, description="Unix timestamp")
    genres: list[NamedRef] = Field(default_factory=list)
    platforms: list[NamedRef] = Field(default_factory=list)
    game_modes: list[NamedRef] = Field(default_factory=list)
    player_perspectives: list[NamedRef] = Field(default_factory=list)
    alternative_names: list[NamedRef] = Field(default_factory=list)
    involved_companies: list[InvolvedCompany] = Field(default_factory=list)
    age_ratings: list[AgeRatingRef] = Field(default_factory=list)

    # Ratings and popularity
    total_rating: float | None = Field(default=None, ge=0, le=100)
    total_rating_count: int | None = Field(default=None, ge=0)
    follows: int | None = Field(default=None, ge=0)
    hypes: int | None = Field(default=None, ge=0)

    # Media
    cover: ImageRef | None = None
    screenshots: list[int] = Field(default_factory=list)
    artworks: list[ImageRef] = Field(default_factory=list)
    videos: list[VideoRef] = Field(default_factory=list)

    # Filled by the client after validation
    derived_ratings: dict[str, float] = Field(default_factory=dict)

    @field_validator("screenshots", mode="before")
    @classmethod
    def screenshot_ids(cls, v: Any) -> Any:
        """Accept expanded screenshot objects as well as bare ids."""
        if isinstance(v, list):
            return [item["id"] if isinstance(item, dict) else item for item in v]
        return v

    @property
    def genre_names(self) -> list[str]:
        """Get list of genre names."""
        return [g.name for g in self.genres if g.name]

    @property
    def platform_names(self) -> list[str]:
        """Get list of platform names."""
        return [p.name for p in self.platforms if p.name]

    @property
    def game_mode_names(self) -> list[str]:
        return [m.name for m in self.game_modes if m.name]

    @property
    def perspective_names(self) -> list[str]:
        return [p.name for p in self.player_perspectives if p.name]

    @property
    def alternative_titles(self) -> list[str]:
        return [a.name for a in self.alternative_names if a.name]

    @property
    def developer(self) -> str | None:
        """First company credited as developer."""
        for involved in self.involved_companies:
            if involved.developer and involved.company and involved.company.name:
                return involved.company.name
        return None

    @property
    def publisher(self) -> str | None:
        """First company credited as publisher."""
        for involved in self.involved_companies:
            if involved.publisher and involved.company and involved.company.name:
                return involved.company.name
        return None

    @property
    def release_date(self) -> date | None:
        """Release date derived from the Unix timestamp (UTC)."""
        if self.first_release_date is None:
            return None
        return datetime.fromtimestamp(self.first_release_date, tz=timezone.utc).date()

    @property
    def age_rating(self) -> str | None:
        """PEGI label when available, otherwise ESRB."""
        labels = [r.label for r in self.age_ratings if r.label]
        pegi = [label for label in labels if label.startswith("PEGI")]
        if pegi:
            return pegi[0]
        return labels[0] if labels else None

    @property
    def cover_url(self) -> str | None:
        return self.cover.url if self.cover else None
