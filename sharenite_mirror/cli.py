#!/usr/bin/env python3
"""
Sync a Sharenite library into the local mirror.

Usage: python -m sharenite_mirror <username> [--refresh] [--covers] [--verbose]

Builds the store, cover cache and sync engine once, loads the library
(from cache when fresh enough) and prints a summary.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .cache import CoverCache, JsonFileStore
from .config import get_data_dir
from .errors import SourceUnavailable
from .services import CoverService, LibrarySyncEngine, PreferenceStore
from .sources import IGDBCoverProvider, ShareniteSource

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sharenite-mirror",
                                     description="Mirror a Sharenite game library locally")
    parser.add_argument("username", help="Sharenite profile name")
    parser.add_argument("--refresh", action="store_true",
                        help="Ignore the cached snapshot and run a full sync")
    parser.add_argument("--covers", action="store_true",
                        help="Resolve cover art for every game (needs IGDB credentials)")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Directory for the persistent store")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


async def run(args: argparse.Namespace) -> int:
    store = JsonFileStore(args.data_dir or get_data_dir())
    source = ShareniteSource(args.username)
    engine = LibrarySyncEngine(source, source, store, PreferenceStore(store))

    def on_update(snapshot):
        logger.info(f"{len(snapshot)} games loaded so far")

    unsubscribe = engine.subscribe(on_update)
    provider = None
    try:
        snapshot = await engine.fetch_all_games(use_cache=not args.refresh)

        profile = snapshot.profile
        if profile:
            print(f"{profile.username}: {profile.total_games} games listed (last activity {profile.last_updated})")
        print(f"Mirror holds {len(snapshot)} games, last updated {snapshot.last_updated or 'never'}")
        played = [g for g in snapshot.games if g.play_count > 0]
        print(f"{len(played)} played, "
              f"{sum(1 for g in snapshot.games if g.is_favorite)} favorites, "
              f"{sum(1 for g in snapshot.games if g.is_completed)} completed")

        if args.covers:
            provider = IGDBCoverProvider()
            if not provider.configured:
                logger.error("IGDB_CLIENT_ID / IGDB_CLIENT_SECRET not set, skipping covers")
            else:
                covers = CoverService(provider, CoverCache(store))
                found = await covers.prefetch(g.title for g in snapshot.games)
                print(f"Covers: {found}/{len(snapshot)}")

        # Let a background refresh started from a stale cache finish
        await engine.wait_for_background()
        return 0
    except SourceUnavailable as e:
        logger.error(f"Could not load library for {args.username}: {e}")
        return 1
    finally:
        unsubscribe()
        await engine.close()
        await source.close()
        if provider is not None:
            await provider.close()


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
