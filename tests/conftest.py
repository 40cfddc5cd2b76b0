"""
Pytest configuration and fixtures
"""

import csv
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from core.config import UploadConfig
from core.exceptions import DatabaseConnectionError, UpsertError
from ingestion.loaders.document_store import DocumentEntry, DocumentStore, dedupe_entries


class InMemoryDocumentStore(DocumentStore):
    """
    Dictionary-backed document store.

    Failures are injected per upsert call through ``fail_when``: a predicate
    on (collection, entries) returning an exception to raise, or None.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self.upsert_calls: List[List[str]] = []
        self.fail_when: Optional[Callable[[str, Sequence[DocumentEntry]], Optional[Exception]]] = None
        self.ping_error: Optional[Exception] = None
        self.count_error: Optional[Exception] = None
        self.closed = False

    async def upsert_many(self, collection, entries):
        self.upsert_calls.append([key for key, _ in entries])
        if self.fail_when is not None:
            error = self.fail_when(collection, entries)
            if error is not None:
                raise error
        latest = dedupe_entries(entries)
        self.collections.setdefault(collection, {}).update(
            {key: dict(document) for key, document in latest.items()}
        )
        return len(latest)

    async def count(self, collection):
        if self.count_error is not None:
            raise self.count_error
        return len(self.collections.get(collection, {}))

    async def ping(self):
        if self.ping_error is not None:
            raise self.ping_error
        self.collections.setdefault("_test", {})["connection_test"] = {"test": True}

    async def delete_many(self, collection, limit):
        documents = self.collections.get(collection, {})
        doomed = list(documents)[:limit]
        for key in doomed:
            del documents[key]
        return len(doomed)

    async def close(self):
        self.closed = True

    def documents(self, collection: str) -> Dict[str, dict]:
        return self.collections.get(collection, {})


def fail_batches_containing(*keys: str, error_factory=None):
    """Predicate failing every upsert that contains one of ``keys``"""
    doomed = set(keys)
    factory = error_factory or (lambda: UpsertError("simulated write failure"))

    def predicate(collection, entries):
        if any(key in doomed for key, _ in entries):
            return factory()
        return None

    return predicate


SEASON_HEADER = ["player_id", "player_name", "position", "season", "passing_yards", "fantasy_points"]
WEEKLY_HEADER = ["player_id", "player_name", "season", "week", "rushing_yards"]
ROSTER_HEADER = ["season", "gsis_id", "full_name", "team", "espn_id", "jersey_number"]
SCHEDULE_HEADER = ["game_id", "season", "week", "home_team", "away_team", "home_score", "old_game_id"]


def season_rows(count: int, season: int = 2024) -> List[List[str]]:
    return [
        [f"00-{i:07d}", f"Player {i}", "QB", str(season), str(1000 + i), f"{i}.5"]
        for i in range(count)
    ]


def write_csv(path: Path, header: Sequence[str], rows: Sequence[Sequence[str]], mtime: Optional[float] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        writer.writerows(rows)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def data_dir(tmp_path):
    """Empty data directory laid out like the fetch output"""
    directory = tmp_path / "data_output"
    directory.mkdir()
    return directory


@pytest.fixture
def upload_config(tmp_path, data_dir):
    """Upload configuration without delays"""
    return UploadConfig(
        batch_size=50,
        batch_delay_seconds=0,
        max_retries=3,
        retry_base_delay_seconds=0,
        checkpoint_file=str(tmp_path / "upload_checkpoint.json"),
        error_log_file=str(tmp_path / "upload_errors.json"),
        data_dir=str(data_dir),
    )


@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def recorded_sleeps():
    """Async sleep replacement that records requested delays"""
    delays: List[float] = []

    async def sleep(delay):
        delays.append(delay)

    sleep.delays = delays
    return sleep


@pytest.fixture
def unreachable_error():
    return DatabaseConnectionError("connection refused")
