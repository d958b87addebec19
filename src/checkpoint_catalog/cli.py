"""
Command-line interface for Checkpoint Catalog.

Triggers imports and maintenance jobs against the JSON catalog store.
Every command prints a JSON envelope on stdout; logs go to stderr.
"""

import asyncio
import json
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field

from checkpoint_catalog.config import LoggingConfig, Settings, SyncConfig, get_settings
from checkpoint_catalog.logger import get_logger, setup_logging

logger = get_logger(__name__, component="cli")


class CLIOutput(BaseModel):
    """Structured output for CLI commands."""

    success: bool
    command: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] | list[Any] | None = None
    error: str | None = None


def print_json(output: CLIOutput) -> None:
    """Print output as formatted JSON."""
    print(json.dumps(output.model_dump(mode="json"), indent=2, ensure_ascii=False))


@asynccontextmanager
async def open_engine(settings: Settings) -> AsyncIterator[Any]:
    """Sync engine and its JSON store, wired from settings."""
    from checkpoint_catalog.catalog.sync import CatalogSyncEngine
    from checkpoint_catalog.ingestion.extractors import CatalogClient
    from checkpoint_catalog.storage import JsonFileGameRepository

    repository = JsonFileGameRepository(settings.sync.storage_path)
    async with CatalogClient(settings=settings) as client:
        yield CatalogSyncEngine(client, repository, settings=settings), repository


async def _run_import(command: str, criteria: Any) -> None:
    from checkpoint_catalog.catalog.sync import SyncAbortedError

    settings = get_settings()
    async with open_engine(settings) as (engine, _):
        try:
            report = await engine.import_batch(criteria)
        except SyncAbortedError as e:
            print_json(
                CLIOutput(success=False, command=command, data=e.report.to_dict(), error=str(e))
            )
            sys.exit(1)

    print_json(CLIOutput(success=True, command=command, data=report.to_dict()))


async def cmd_import_top(min_votes: int | None, min_rating: float | None) -> None:
    """Import the best-rated games of all time."""
    from checkpoint_catalog.catalog.sync import ImportCriteria

    sync = get_settings().sync
    criteria = ImportCriteria.for_quality(
        min_votes=min_votes if min_votes is not None else sync.min_votes,
        min_rating=min_rating if min_rating is not None else sync.min_rating,
        main_games_only=True,
    )
    logger.info("Importing top games", **criteria.describe())
    await _run_import("import-top", criteria)


async def cmd_import_year(
    min_votes: int | None, min_rating: float | None, days: int | None
) -> None:
    """Import the best-rated games released recently."""
    from checkpoint_catalog.catalog.sync import ImportCriteria

    sync = get_settings().sync
    criteria = ImportCriteria.for_quality(
        min_votes=min_votes if min_votes is not None else sync.min_votes,
        min_rating=min_rating if min_rating is not None else sync.min_rating,
        recency_days=days or sync.recency_days,
        now=datetime.now(timezone.utc),
        main_games_only=True,
    )
    logger.info("Importing games of the year", **criteria.describe())
    await _run_import("import-year", criteria)


async def cmd_import_search(term: str, max_results: int | None) -> None:
    """Import the results of a search."""
    async with open_engine(get_settings()) as (engine, _):
        games = await engine.import_by_search_term(term, max_results)

    print_json(
        CLIOutput(
            success=True,
            command="import-search",
            data=[{"id": g.id, "slug": g.slug, "title": g.title} for g in games],
        )
    )


async def cmd_ensure_titles(titles: list[str] | None) -> None:
    """Make sure the safety-net titles are in the catalog."""
    async with open_engine(get_settings()) as (engine, _):
        results = await engine.ensure_titles(titles)

    print_json(
        CLIOutput(
            success=all(game is not None for game in results.values()),
            command="ensure-titles",
            data={title: game.slug if game else None for title, game in results.items()},
        )
    )


async def cmd_search(term: str, limit: int) -> None:
    """Search local catalog and upstream without importing anything."""
    from checkpoint_catalog.catalog.search import GameSearchService

    settings = get_settings()
    async with open_engine(settings) as (engine, repository):
        service = GameSearchService(engine, repository, remote_limit=limit)
        outcome = await service.search_with_fallback(term)

    print_json(
        CLIOutput(
            success=outcome.error is None or bool(outcome.results),
            command="search",
            data={
                "source": outcome.source.value,
                "local_count": outcome.local_count,
                "remote_count": outcome.remote_count,
                "results": [r.model_dump(mode="json") for r in outcome.results],
            },
            error=outcome.error,
        )
    )


async def cmd_import_screenshots() -> None:
    """Fetch screenshots for stored games that have none."""
    from checkpoint_catalog.catalog.sync import SyncAbortedError

    async with open_engine(get_settings()) as (engine, _):
        try:
            report = await engine.backfill_screenshots()
        except SyncAbortedError as e:
            print_json(
                CLIOutput(
                    success=False,
                    command="import-screenshots",
                    data=e.report.to_dict(),
                    error=str(e),
                )
            )
            sys.exit(1)

    print_json(CLIOutput(success=True, command="import-screenshots", data=report.to_dict()))


def open_maintenance(sync: SyncConfig) -> Any:
    """Storage-only maintenance over the JSON store; needs no IGDB credentials."""
    from checkpoint_catalog.catalog.maintenance import CatalogMaintenance
    from checkpoint_catalog.storage import JsonFileGameRepository

    return CatalogMaintenance(JsonFileGameRepository(sync.storage_path), sync=sync)


def cmd_clean_slugs() -> None:
    """Strip leftover numeric suffixes from stored slugs."""
    result = open_maintenance(SyncConfig()).cleanup_slugs()

    print_json(
        CLIOutput(
            success=result.errors == 0,
            command="clean-slugs",
            data={
                "updated": result.updated,
                "unchanged": result.unchanged,
                "errors": result.errors,
                "changes": result.changes,
            },
        )
    )


def cmd_purge(threshold: int | None) -> None:
    """Delete games with too few ratings."""
    deleted = open_maintenance(SyncConfig()).purge_low_quality(threshold)

    print_json(CLIOutput(success=True, command="purge-low-quality", data={"deleted": deleted}))


def cmd_top(
    limit: int, min_votes: int | None, min_rating: float | None, days: int | None
) -> None:
    """Print the ranked, deduplicated list from the local catalog."""
    from checkpoint_catalog.catalog.ranking import top_games
    from checkpoint_catalog.storage import JsonFileGameRepository

    sync = SyncConfig()
    repository = JsonFileGameRepository(sync.storage_path)
    since = datetime.now(timezone.utc) - timedelta(days=days) if days else None
    games = top_games(
        repository,
        min_votes=min_votes if min_votes is not None else sync.min_votes,
        min_rating=min_rating if min_rating is not None else sync.min_rating,
        limit=limit,
        since=since,
    )

    print_json(
        CLIOutput(
            success=True,
            command="top",
            data=[
                {
                    "rank": rank,
                    "slug": game.slug,
                    "title": game.title,
                    "total_rating": game.total_rating,
                    "total_rating_count": game.total_rating_count,
                }
                for rank, game in enumerate(games, start=1)
            ],
        )
    )


def cmd_groups() -> None:
    """Show title variants the deduplication collapses together."""
    from checkpoint_catalog.catalog.dedup import DeduplicationResolver
    from checkpoint_catalog.catalog.ranking import ranking_key
    from checkpoint_catalog.storage import JsonFileGameRepository

    repository = JsonFileGameRepository(SyncConfig().storage_path)
    groups = DeduplicationResolver().group(sorted(repository.all(), key=ranking_key))

    print_json(
        CLIOutput(
            success=True,
            command="groups",
            data={key: [g.title for g in games] for key, games in groups.items() if len(games) > 1},
        )
    )


async def cmd_test_config() -> None:
    """Test configuration loading."""
    settings = get_settings()

    output = CLIOutput(
        success=True,
        command="test-config",
        data={
            "environment": settings.environment,
            "igdb_base_url": settings.igdb.base_url,
            "igdb_token_url": settings.igdb.token_url,
            "igdb_requests_per_second": settings.igdb.requests_per_second,
            "igdb_page_size": settings.igdb.page_size,
            "client_id_configured": bool(settings.igdb.client_id),
            "client_secret_configured": bool(settings.igdb.client_secret.get_secret_value()),
            "storage_path": str(settings.sync.storage_path),
            "slug_probe_limit": settings.sync.slug_probe_limit,
            "safety_net_titles": settings.sync.safety_net_titles,
        },
    )
    print_json(output)


def print_usage() -> None:
    """Print CLI usage information."""
    usage = """
Checkpoint Catalog CLI
======================

Usage: python -m checkpoint_catalog.cli <command> [arguments]

Commands:
  test-config                     Test configuration loading
  import-top                      Import best-rated games of all time
  import-year                     Import best-rated games of the last year
  import-search <term>            Import the results of a search
  ensure-titles [t1,t2,...]       Import safety-net titles if missing
  search <term>                   Search local catalog and IGDB (no import)
  import-screenshots              Fetch screenshots for games without any
  clean-slugs                     Strip leftover numeric slug suffixes
  purge-low-quality               Delete games with too few ratings
  top                             Ranked, deduplicated list from the catalog
  groups                          Show title variants collapsed together

Options:
  --min-votes <n>                 Minimum rating count
  --min-rating <x>                Minimum aggregate rating
  --days <n>                      Recency window in days
  --limit <n>                     Number of results
  --threshold <n>                 Purge threshold on rating count

Examples:
  python -m checkpoint_catalog.cli import-top --min-votes 100
  python -m checkpoint_catalog.cli ensure-titles "Astro Bot,Split Fiction"
"""
    print(usage)


def _option(name: str) -> str | None:
    """Value following ``name`` in argv, if present."""
    if name in sys.argv:
        idx = sys.argv.index(name)
        if idx + 1 < len(sys.argv):
            return sys.argv[idx + 1]
    return None


def _int_option(name: str) -> int | None:
    value = _option(name)
    return int(value) if value is not None else None


def _float_option(name: str) -> float | None:
    value = _option(name)
    return float(value) if value is not None else None


def _argument() -> str | None:
    """First positional argument after the command."""
    if len(sys.argv) > 2 and not sys.argv[2].startswith("--"):
        return sys.argv[2]
    return None


def main() -> None:
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1]
    setup_logging(LoggingConfig())

    try:
        if command == "test-config":
            asyncio.run(cmd_test_config())

        elif command == "import-top":
            asyncio.run(cmd_import_top(_int_option("--min-votes"), _float_option("--min-rating")))

        elif command == "import-year":
            asyncio.run(
                cmd_import_year(
                    _int_option("--min-votes"),
                    _float_option("--min-rating"),
                    _int_option("--days"),
                )
            )

        elif command == "import-search":
            term = _argument()
            if term is None:
                print("Error: search term required")
                sys.exit(1)
            asyncio.run(cmd_import_search(term, _int_option("--limit")))

        elif command == "ensure-titles":
            titles_arg = _argument()
            titles = (
                [t.strip() for t in titles_arg.split(",") if t.strip()] if titles_arg else None
            )
            asyncio.run(cmd_ensure_titles(titles))

        elif command == "search":
            term = _argument()
            if term is None:
                print("Error: search term required")
                sys.exit(1)
            asyncio.run(cmd_search(term, _int_option("--limit") or 10))

        elif command == "import-screenshots":
            asyncio.run(cmd_import_screenshots())

        elif command == "clean-slugs":
            cmd_clean_slugs()

        elif command == "purge-low-quality":
            cmd_purge(_int_option("--threshold"))

        elif command == "top":
            cmd_top(
                _int_option("--limit") or 100,
                _int_option("--min-votes"),
                _float_option("--min-rating"),
                _int_option("--days"),
            )

        elif command == "groups":
            cmd_groups()

        elif command in ("help", "--help", "-h"):
            print_usage()

        else:
            print(f"Unknown command: {command}")
            print_usage()
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.exception("CLI error", error=str(e))
        output = CLIOutput(
            success=False,
            command=command,
            error=str(e),
        )
        print_json(output)
        sys.exit(1)


if __name__ == "__main__":
    main()
