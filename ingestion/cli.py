"""
Command line entry points.

    nfl-upload <data_type> [--reset]      upload season | weekly | roster | schedule | all
    nfl-fetch <data_type> [--seasons S]   download source CSV files
    nfl-purge [collection ...] [--yes]    delete every document of collections
    nfl-schedule [--run-now]              periodic fetch + upload
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional, Sequence
import logging

from pydantic import ValidationError

from core.config import Settings
from core.exceptions import DatabaseConnectionError, ETLException, ExtractionError
from core.logging import setup_logging
from ingestion.categories import CATEGORY_SPECS
from ingestion.checkpoint import ErrorLog
from ingestion.pipeline import create_store, run_fetch, run_upload
from ingestion.purge import CollectionPurger
from ingestion.retry import RetryPolicy
from ingestion.scheduler import RefreshScheduler
from models.base import Category

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

DATA_TYPE_HELP = {
    Category.SEASON: "Upload season statistics data",
    Category.WEEKLY: "Upload weekly statistics data",
    Category.ROSTER: "Upload roster data",
    Category.SCHEDULE: "Upload games schedule data",
}


def parse_categories(data_type: str) -> List[Category]:
    """
    Resolve a case-insensitive data type; ``all`` expands to every category.

    Raises:
        ValueError: For an unknown data type
    """
    if data_type.strip().lower() == "all":
        return list(Category)
    return [Category.parse(data_type)]


def _print_usage(prog: str):
    print(f"Usage: {prog} <data_type>")
    print("")
    print("Valid data types:")
    for category, text in DATA_TYPE_HELP.items():
        print(f"  {category.value:<8} - {text}")
    print("  all      - All of the above, in this order")
    print("")
    print("Examples:")
    for category in Category:
        print(f"  {prog} {category.value}")


def _resolve_data_type(prog: str, data_type: Optional[str]) -> Optional[List[Category]]:
    if not data_type:
        print("Error: No data type specified")
        print("")
        _print_usage(prog)
        return None
    try:
        return parse_categories(data_type)
    except ValueError:
        print(f'Error: Invalid data type "{data_type}"')
        print("")
        print("Valid data types are: " + ", ".join([c.value for c in Category] + ["all"]))
        return None


def _install_signal_handlers(stop_event: asyncio.Event):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            pass


def _load_settings() -> Optional[Settings]:
    try:
        settings = Settings()
        settings.upload_config()
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}")
        return None
    setup_logging(settings.LOG_LEVEL)
    return settings


# ============================================================================
# nfl-upload
# ============================================================================

async def _upload(settings: Settings, categories: Sequence[Category], reset: bool) -> int:
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    try:
        summary = await run_upload(settings, categories, reset=reset, stop_event=stop_event)
    except (DatabaseConnectionError, ExtractionError) as e:
        logger.error(f"Fatal error: {e}")
        ErrorLog(settings.ERROR_LOG_FILE).append(e.message, "Main upload function")
        return EXIT_FAILURE

    if summary.interrupted:
        logger.warning("Upload interrupted; rerun the same command to resume")
        return EXIT_INTERRUPTED
    return EXIT_OK


def upload_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="nfl-upload",
        description="Upload NFL statistics CSV files to the document store with checkpoint recovery"
    )
    parser.add_argument("data_type", nargs="?", help="season, weekly, roster, schedule or all")
    parser.add_argument("--reset", action="store_true", help="ignore saved progress for the data type")
    args = parser.parse_args(argv)

    categories = _resolve_data_type(parser.prog, args.data_type)
    if categories is None:
        return EXIT_FAILURE

    settings = _load_settings()
    if settings is None:
        return EXIT_FAILURE

    return asyncio.run(_upload(settings, categories, args.reset))


# ============================================================================
# nfl-fetch
# ============================================================================

def fetch_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="nfl-fetch",
        description="Download NFL statistics CSV files from the stats provider"
    )
    parser.add_argument("data_type", nargs="?", help="season, weekly, roster, schedule or all")
    parser.add_argument("--seasons", help="single season (2024) or range (1999:2024); defaults to SEASONS")
    parser.add_argument("--keep-old", action="store_true", help="keep previously fetched files")
    args = parser.parse_args(argv)

    categories = _resolve_data_type(parser.prog, args.data_type)
    if categories is None:
        return EXIT_FAILURE

    settings = _load_settings()
    if settings is None:
        return EXIT_FAILURE

    try:
        results = asyncio.run(run_fetch(settings, categories, args.seasons, clean=not args.keep_old))
    except ValueError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except ETLException as e:
        logger.error(f"Fetch failed: {e}")
        return EXIT_FAILURE

    for result in results:
        logger.info(f"{result.category.value}: {len(result.files)} files written")
    return EXIT_OK


# ============================================================================
# nfl-purge
# ============================================================================

def _confirm(collection: str, count: int) -> bool:
    answer = input(f"Delete all {count} documents from '{collection}'? This cannot be undone. (yes/no): ")
    return answer.strip().lower() in ("y", "yes")


async def _purge(settings: Settings, collections: Sequence[str], assume_yes: bool) -> int:
    store = create_store(settings)
    purger = CollectionPurger(
        store,
        batch_size=settings.PURGE_BATCH_SIZE,
        batch_delay_seconds=settings.PURGE_BATCH_DELAY_SECONDS,
        retry_policy=RetryPolicy(
            max_retries=settings.MAX_RETRIES,
            base_delay=settings.RETRY_BASE_DELAY_SECONDS
        )
    )
    try:
        for collection in collections:
            count = await store.count(collection)
            if count == 0:
                logger.info(f"Collection '{collection}' is empty, nothing to delete")
                continue
            if not assume_yes and not _confirm(collection, count):
                logger.info(f"Skipping '{collection}'")
                continue
            await purger.purge(collection)
    except ETLException as e:
        logger.error(f"Purge failed: {e}")
        return EXIT_FAILURE
    finally:
        await store.close()
    return EXIT_OK


def purge_main(argv: Optional[Sequence[str]] = None) -> int:
    default_collections = [spec.collection for spec in CATEGORY_SPECS.values()]
    parser = argparse.ArgumentParser(
        prog="nfl-purge",
        description="Delete every document of one or more collections in batches"
    )
    parser.add_argument(
        "collections",
        nargs="*",
        help=f"collections to delete (default: {', '.join(default_collections)})"
    )
    parser.add_argument("--yes", action="store_true", help="do not ask for confirmation")
    args = parser.parse_args(argv)

    settings = _load_settings()
    if settings is None:
        return EXIT_FAILURE

    return asyncio.run(_purge(settings, args.collections or default_collections, args.yes))


# ============================================================================
# nfl-schedule
# ============================================================================

async def _schedule(settings: Settings, run_now: bool) -> int:
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    scheduler = RefreshScheduler(settings, stop_event=stop_event)
    scheduler.start()
    try:
        if run_now:
            await scheduler.run_refresh_job()
        await stop_event.wait()
    finally:
        scheduler.stop()
    return EXIT_OK


def schedule_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="nfl-schedule",
        description="Fetch and upload every category on a fixed interval"
    )
    parser.add_argument("--run-now", action="store_true", help="run one refresh immediately")
    args = parser.parse_args(argv)

    settings = _load_settings()
    if settings is None:
        return EXIT_FAILURE

    return asyncio.run(_schedule(settings, args.run_now))


if __name__ == "__main__":
    sys.exit(upload_main())
