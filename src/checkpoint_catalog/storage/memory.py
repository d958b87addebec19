"""In-process game repository."""

from checkpoint_catalog.catalog.models import Game
from checkpoint_catalog.logger import get_logger
from checkpoint_catalog.storage.base import GameRepository, PersistenceConflict, ThresholdField


class InMemoryGameRepository(GameRepository):
    """
    Dictionary-backed repository with unique indexes on slug and external id.

    Aggregates are copied on the way in and out, so callers never
    share mutable state with the store.
    """

    def __init__(self) -> None:
        self._games: dict[int, Game] = {}
        self._by_slug: dict[str, int] = {}
        self._by_external_id: dict[int, int] = {}
        self._next_id = 1
        self._logger = get_logger(__name__, component="repository")

    def find_by_id(self, game_id: int) -> Game | None:
        game = self._games.get(game_id)
        return game.model_copy(deep=True) if game else None

    def find_by_external_id(self, external_id: int) -> Game | None:
        game_id = self._by_external_id.get(external_id)
        return self.find_by_id(game_id) if game_id is not None else None

    def find_by_slug(self, slug: str) -> Game | None:
        game_id = self._by_slug.get(slug)
        return self.find_by_id(game_id) if game_id is not None else None

    def upsert(self, game: Game) -> Game:
        if not game.slug:
            raise ValueError("A game must have a slug before it is stored")

        previous = self._games.get(game.id) if game.id is not None else None
        if game.id is not None and previous is None:
            raise ValueError(f"Unknown game id {game.id}")

        if (
            previous is not None
            and previous.external_id is not None
            and game.external_id != previous.external_id
        ):
            raise PersistenceConflict("external_id", game.external_id, existing_id=previous.id)

        slug_owner = self._by_slug.get(game.slug)
        if slug_owner is not None and slug_owner != game.id:
            raise PersistenceConflict("slug", game.slug, existing_id=slug_owner)

        if game.external_id is not None:
            external_owner = self._by_external_id.get(game.external_id)
            if external_owner is not None and external_owner != game.id:
                raise PersistenceConflict(
                    "external_id", game.external_id, existing_id=external_owner
                )

        stored = game.model_copy(deep=True)
        if stored.id is None:
            stored.id = self._next_id
            self._next_id += 1

        if previous is not None:
            self._unindex(previous)
        self._games[stored.id] = stored
        self._by_slug[stored.slug] = stored.id  # type: ignore[index]
        if stored.external_id is not None:
            self._by_external_id[stored.external_id] = stored.id

        return stored.model_copy(deep=True)

    def _unindex(self, game: Game) -> None:
        if game.slug is not None:
            self._by_slug.pop(game.slug, None)
        if game.external_id is not None:
            self._by_external_id.pop(game.external_id, None)

    def bulk_delete_below_threshold(self, field: ThresholdField, threshold: float) -> int:
        doomed = [
            game
            for game in self._games.values()
            if getattr(game, field) is None or getattr(game, field) < threshold
        ]
        media_rows = sum(game.media_count for game in doomed)
        for game in doomed:
            self._unindex(game)
            del self._games[game.id]  # type: ignore[arg-type]

        self._logger.info(
            "Deleted games below threshold",
            field=field,
            threshold=threshold,
            games=len(doomed),
            media_rows=media_rows,
        )
        return len(doomed)

    def all(self) -> list[Game]:
        return [game.model_copy(deep=True) for game in self._games.values()]

    def search_by_title(self, term: str, limit: int | None = None) -> list[Game]:
        needle = term.casefold().strip()
        matches = [
            game.model_copy(deep=True)
            for game in self._games.values()
            if needle in game.title.casefold()
            or any(needle in alt.casefold() for alt in game.alternative_titles)
        ]
        return matches[:limit] if limit is not None else matches

    def count(self) -> int:
        return len(self._games)
