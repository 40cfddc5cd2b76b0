"""
Wiring of settings, destination store and pipeline components, shared by the
command line entry points and the scheduler.
"""

import asyncio
from typing import List, Optional, Sequence
import logging

from core.config import Settings
from core.exceptions import FetchError
from ingestion.categories import get_spec
from ingestion.extractors.stats_fetcher import FetchResult, StatsFetcher, parse_seasons
from ingestion.loaders.postgres_loader import PostgresDocumentStore
from ingestion.retry import RetryPolicy
from ingestion.runner import RunSummary, UploadOrchestrator
from models.base import Category

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> PostgresDocumentStore:
    return PostgresDocumentStore.from_url(settings.DATABASE_URL, echo=False)


def build_fetcher(settings: Settings, stop_event: Optional[asyncio.Event] = None) -> StatsFetcher:
    return StatsFetcher(
        url_templates={
            Category.SEASON: settings.SEASON_STATS_URL,
            Category.WEEKLY: settings.WEEKLY_STATS_URL,
            Category.ROSTER: settings.ROSTER_URL,
            Category.SCHEDULE: settings.SCHEDULE_URL,
        },
        data_dir=settings.DATA_DIR,
        retry_policy=RetryPolicy(
            max_retries=settings.MAX_RETRIES,
            base_delay=settings.RETRY_BASE_DELAY_SECONDS,
            stop_event=stop_event,
            exhausted_error=FetchError
        ),
        timeout=settings.FETCH_TIMEOUT_SECONDS,
        api_token=settings.PROVIDER_API_TOKEN
    )


async def run_fetch(
    settings: Settings,
    categories: Sequence[Category],
    seasons: Optional[str] = None,
    clean: bool = True
) -> List[FetchResult]:
    season_list = parse_seasons(seasons or settings.SEASONS)
    fetcher = build_fetcher(settings)
    results = []
    for category in categories:
        results.append(await fetcher.fetch(get_spec(category), season_list, clean=clean))
    return results


async def run_upload(
    settings: Settings,
    categories: Sequence[Category],
    reset: bool = False,
    stop_event: Optional[asyncio.Event] = None
) -> RunSummary:
    """Open the destination once, run the orchestrator, always dispose the engine"""
    store = create_store(settings)
    try:
        orchestrator = UploadOrchestrator(store, settings.upload_config(), stop_event=stop_event)
        return await orchestrator.run(categories, reset=reset)
    finally:
        await store.close()
