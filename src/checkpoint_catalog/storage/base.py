"""
Storage port for game aggregates.

The sync engine only talks to ``GameRepository``. Implementations
must enforce slug and external-id uniqueness and signal violations
with ``PersistenceConflict``.
"""

from abc import ABC, abstractmethod
from typing import Literal

from checkpoint_catalog.catalog.models import Game

ThresholdField = Literal["total_rating_count", "total_rating", "follows"]


class PersistenceConflict(Exception):
    """Raised when an upsert would break a uniqueness constraint."""

    def __init__(self, field: str, value: object, *, existing_id: int | None = None) -> None:
        super().__init__(f"{field} {value!r} already belongs to game {existing_id}")
        self.field = field
        self.value = value
        self.existing_id = existing_id


class GameRepository(ABC):
    """Abstract persistence for ``Game`` aggregates."""

    @abstractmethod
    def find_by_id(self, game_id: int) -> Game | None: ...

    @abstractmethod
    def find_by_external_id(self, external_id: int) -> Game | None: ...

    @abstractmethod
    def find_by_slug(self, slug: str) -> Game | None: ...

    @abstractmethod
    def upsert(self, game: Game) -> Game:
        """
        Insert or update an aggregate and its owned media.

        Args:
            game: Aggregate to store; ``id`` is None for new aggregates

        Returns:
            Game: Stored copy with ``id`` assigned

        Raises:
            PersistenceConflict: Slug or external id held by another
                aggregate, or an attempt to change an external id
        """
        ...

    @abstractmethod
    def bulk_delete_below_threshold(
        self, field: ThresholdField, threshold: float
    ) -> int:
        """
        Delete aggregates whose ``field`` is below ``threshold`` or null.

        Owned media is removed with its aggregate.

        Returns:
            int: Number of aggregates deleted
        """
        ...

    @abstractmethod
    def all(self) -> list[Game]: ...

    @abstractmethod
    def search_by_title(self, term: str, limit: int | None = None) -> list[Game]:
        """Case-insensitive substring match on title and alternative titles."""
        ...

    def count(self) -> int:
        return len(self.all())
