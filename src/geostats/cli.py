"""CLI entry point for duels and single-player game ingestion.

Provides ``main()`` as the sync entry point for the ``geostats-ingest``
console script, and ``async_main(args)`` which sets up logging,
initializes all components, runs the pipeline, and prints an
end-of-run summary.

Usage::

    geostats-ingest 5f3c0e... 60aa12...          # ingest specific matches
    geostats-ingest --feed recent-games.json     # ingest a player's feed
    geostats-ingest --no-save-payloads --timeout 30 5f3c0e...
    geostats-ingest --solo Xk3pQ2 --solo Lm9aT1    # ingest single-player games
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from geostats.assembler import GameAssembler
from geostats.cache import TTLCache
from geostats.config import IngestConfig
from geostats.db import Database
from geostats.feed import game_ids_from_feed, load_feed
from geostats.geo import BoundaryIndex, GeoResolver
from geostats.http_client import GeoGuessrClient
from geostats.logging_config import setup_logging
from geostats.pipeline import BatchResult, IngestPipeline
from geostats.players import PlayerResolver
from geostats.repository import IngestRepository
from geostats.session import GuestSession
from geostats.solo import SoloGameAssembler
from geostats.storage import PayloadStorage
from geostats.teams import TeamResolver

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the geostats-ingest CLI."""
    parser = argparse.ArgumentParser(
        prog="geostats-ingest",
        description="Ingest finished GeoGuessr duels into the stats database",
    )
    parser.add_argument(
        "game_ids",
        nargs="*",
        help="Duels game ids to ingest",
    )
    parser.add_argument(
        "--solo",
        action="append",
        default=[],
        metavar="TOKEN",
        help="Single-player game token to ingest (repeatable)",
    )
    parser.add_argument(
        "--feed",
        type=str,
        default=None,
        help="Recent-games feed JSON file to harvest game ids from",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default="data",
        help="Data directory for DB, payload archive, and logs (default: data)",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="SQLite database path (default: <data-dir>/geostats.db)",
    )
    parser.add_argument(
        "--world-boundaries",
        type=str,
        default=None,
        help="World boundary GeoJSON (default: <data-dir>/boundaries/world.json.gz)",
    )
    parser.add_argument(
        "--subdivision-boundaries",
        type=str,
        default=None,
        help="Subdivision boundary GeoJSON (default: <data-dir>/boundaries/states.json.gz)",
    )
    parser.add_argument(
        "--no-save-payloads",
        action="store_true",
        help="Do not archive raw match payloads",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: 15)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show DEBUG output on the console",
    )
    return parser


def build_config(args: argparse.Namespace) -> IngestConfig:
    """Turn parsed CLI arguments into an ``IngestConfig``."""
    data_dir = args.data_dir
    overrides = {
        "data_dir": data_dir,
        "db_path": args.db_path or f"{data_dir}/geostats.db",
        "world_boundaries_path": (
            args.world_boundaries or f"{data_dir}/boundaries/world.json.gz"
        ),
        "subdivision_boundaries_path": (
            args.subdivision_boundaries or f"{data_dir}/boundaries/states.json.gz"
        ),
        "save_payloads": not args.no_save_payloads,
    }
    if args.timeout is not None:
        overrides["request_timeout"] = args.timeout
    return IngestConfig(**overrides)


def collect_game_ids(args: argparse.Namespace) -> list[str]:
    """Positional ids first, then ids harvested from ``--feed``."""
    game_ids = list(args.game_ids)
    if args.feed:
        data = json.loads(Path(args.feed).read_text(encoding="utf-8"))
        feed_ids = game_ids_from_feed(load_feed(data))
        logger.info("Found %d game ids in feed %s", len(feed_ids), args.feed)
        game_ids.extend(feed_ids)
    return list(dict.fromkeys(game_ids))


def load_resolver(config: IngestConfig) -> GeoResolver:
    """Load boundary indexes; the subdivision dataset is optional."""
    world = BoundaryIndex.from_file(config.world_boundaries_path)
    subdivisions = None
    if Path(config.subdivision_boundaries_path).exists():
        subdivisions = BoundaryIndex.from_file(config.subdivision_boundaries_path)
    else:
        logger.warning(
            "Subdivision boundaries %s not found, subdivision codes disabled",
            config.subdivision_boundaries_path,
        )
    return GeoResolver(world, subdivisions, config.priority_country_codes)


async def async_main(args: argparse.Namespace) -> BatchResult | None:
    """Async entry point: set up components, run pipeline, print summary."""
    # 1. Logging
    log_file = setup_logging(
        data_dir=args.data_dir,
        console_level=logging.DEBUG if args.verbose else logging.INFO,
    )

    # 2. Config and work list
    config = build_config(args)
    game_ids = collect_game_ids(args)
    solo_tokens = list(dict.fromkeys(args.solo))
    if not game_ids and not solo_tokens:
        logger.warning("No game ids given, nothing to do")
        return None

    logger.info(
        "Starting geostats-ingest: %d duels, %d solo games, db=%s, timeout=%.0fs, log=%s",
        len(game_ids), len(solo_tokens), config.db_path, config.request_timeout, log_file,
    )

    # 3. Geo resolution (loaded once, read-only afterwards)
    geo = load_resolver(config)

    # 4. Database
    db = Database(config.db_path)
    db.initialize()

    result = None
    try:
        cache = TTLCache(config.cache_ttl)
        session = GuestSession(config)
        storage = PayloadStorage(Path(config.data_dir) / "raw") if config.save_payloads else None

        async with GeoGuessrClient(config, session=session) as client:
            repository = IngestRepository(db.conn)
            players = PlayerResolver(client, cache)
            batches = []
            if game_ids:
                assembler = GameAssembler(
                    client, geo, players, TeamResolver(client, cache), storage=storage
                )
                pipeline = IngestPipeline(assembler, repository, config)
                batches.append(await pipeline.ingest_games(game_ids))
            if solo_tokens:
                solo_assembler = SoloGameAssembler(client, geo, players, storage=storage)
                pipeline = IngestPipeline(solo_assembler, repository, config)
                batches.append(await pipeline.ingest_games(solo_tokens))
            result = BatchResult.combine(batches)

            logger.info("HTTP: %s", client.stats)
        logger.info("\n%s\n  Log file       : %s", result.format_summary(), log_file)
    finally:
        db.close()
        logging.shutdown()

    return result


def main() -> None:
    """Sync entry point for the geostats-ingest console script."""
    parser = build_parser()
    args = parser.parse_args()
    if not args.game_ids and not args.feed and not args.solo:
        parser.error("give at least one game id, --feed or --solo")
    try:
        asyncio.run(async_main(args))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
