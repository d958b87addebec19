"""
Game storage.

``GameRepository`` is the port the sync engine depends on;
the in-memory and JSON file stores implement it.
"""

from checkpoint_catalog.storage.base import GameRepository, PersistenceConflict
from checkpoint_catalog.storage.json_store import JsonFileGameRepository
from checkpoint_catalog.storage.memory import InMemoryGameRepository

__all__ = [
    "GameRepository",
    "InMemoryGameRepository",
    "JsonFileGameRepository",
    "PersistenceConflict",
]
