"""
Game Catalog.

The game aggregate, slug allocation, title deduplication,
ranked lists and the sync engine.
"""

from checkpoint_catalog.catalog.models import (
    Artwork,
    Game,
    GameCategory,
    Screenshot,
    SearchResult,
    Video,
)

__all__ = [
    "Artwork",
    "Game",
    "GameCategory",
    "SearchResult",
    "Screenshot",
    "Video",
]
