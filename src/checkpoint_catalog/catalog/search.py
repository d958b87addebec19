"""
Game search combining the local catalog with a live upstream search.

Local matches come first and are flagged ``is_persisted``; upstream
results that are not stored yet follow. When upstream is unavailable
the local matches are returned alone.
"""

from dataclasses import dataclass, field
from enum import Enum

from checkpoint_catalog.catalog.models import SearchResult
from checkpoint_catalog.catalog.sync import CatalogSyncEngine
from checkpoint_catalog.ingestion.extractors import ExtractionError
from checkpoint_catalog.logger import get_logger
from checkpoint_catalog.storage.base import GameRepository


class SearchSource(str, Enum):
    """Where the returned results came from."""

    LOCAL = "local"
    REMOTE = "remote"
    MIXED = "mixed"
    LOCAL_FALLBACK = "local_fallback"
    ERROR = "error"


@dataclass
class SearchOutcome:
    """Merged search results."""

    query: str
    source: SearchSource
    results: list[SearchResult] = field(default_factory=list)
    local_count: int = 0
    remote_count: int = 0
    error: str | None = None


class GameSearchService:
    """Search the local catalog and upstream together."""

    def __init__(
        self,
        engine: CatalogSyncEngine,
        repository: GameRepository,
        *,
        local_limit: int = 20,
        remote_limit: int = 20,
    ) -> None:
        self._engine = engine
        self._repository = repository
        self._local_limit = local_limit
        self._remote_limit = remote_limit
        self._logger = get_logger(__name__, component="search")

    async def search_with_fallback(self, query: str) -> SearchOutcome:
        """
        Search locally and upstream, merging by external id.

        Args:
            query: Free-text search term

        Returns:
            SearchOutcome: Results and the source they came from
        """
        local = [
            SearchResult.from_game(game)
            for game in self._repository.search_by_title(query, limit=self._local_limit)
        ]

        try:
            remote = await self._engine.search_without_persist(query, limit=self._remote_limit)
        except ExtractionError as e:
            self._logger.warning(
                "Upstream search failed, using local results",
                query=query,
                local_count=len(local),
                error=str(e),
            )
            return SearchOutcome(
                query=query,
                source=SearchSource.LOCAL_FALLBACK if local else SearchSource.ERROR,
                results=local,
                local_count=len(local),
                error=str(e),
            )

        stored_ids = {r.external_id for r in local if r.external_id is not None}
        fresh = [r for r in remote if r.external_id not in stored_ids]
        for result in fresh:
            # stored under a title the local search did not match
            if (
                result.external_id is not None
                and self._repository.find_by_external_id(result.external_id) is not None
            ):
                result.is_persisted = True

        if local and fresh:
            source = SearchSource.MIXED
        elif local:
            source = SearchSource.LOCAL
        else:
            source = SearchSource.REMOTE

        return SearchOutcome(
            query=query,
            source=source,
            results=[*local, *fresh],
            local_count=len(local),
            remote_count=len(fresh),
        )
