"""
JSON file game repository.

Keeps the catalog in a single JSON document under ``data/catalog``
by default. The whole document is rewritten after every mutation,
through a temporary file so a crash never leaves a truncated store.
"""

import json
import os
from pathlib import Path
from typing import Any

from checkpoint_catalog.catalog.models import Game
from checkpoint_catalog.storage.base import ThresholdField
from checkpoint_catalog.storage.memory import InMemoryGameRepository

FORMAT_VERSION = 1


class JsonFileGameRepository(InMemoryGameRepository):
    """
    Repository persisted to a JSON file.

    Example:
        >>> repo = JsonFileGameRepository(Path("data/catalog/games.json"))
        >>> repo.find_by_slug("hades")
    """

    def __init__(self, path: Path) -> None:
        """
        Open (or create) a store.

        Args:
            path: JSON document location; parent directories are created
        """
        super().__init__()
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            self._logger.info("Starting empty catalog store", path=str(self._path))
            return

        with self._path.open(encoding="utf-8") as f:
            document: dict[str, Any] = json.load(f)

        for item in document.get("games", []):
            game = Game.model_validate(item)
            if game.id is None or not game.slug:
                raise ValueError(f"Stored game without id or slug in {self._path}")
            self._games[game.id] = game
            self._by_slug[game.slug] = game.id
            if game.external_id is not None:
                self._by_external_id[game.external_id] = game.id

        self._next_id = max(document.get("next_id", 1), max(self._games, default=0) + 1)
        self._logger.info("Loaded catalog store", path=str(self._path), games=len(self._games))

    def _flush(self) -> None:
        document = {
            "version": FORMAT_VERSION,
            "next_id": self._next_id,
            "games": [game.model_dump(mode="json") for game in self._games.values()],
        }
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self._path)

    def upsert(self, game: Game) -> Game:
        stored = super().upsert(game)
        self._flush()
        return stored

    def bulk_delete_below_threshold(self, field: ThresholdField, threshold: float) -> int:
        deleted = super().bulk_delete_below_threshold(field, threshold)
        if deleted:
            self._flush()
        return deleted
