"""
Statistics fetcher: downloads per-season CSV files from the stats provider.

This module provides:
- Season range parsing ("2024" or "1999:2024")
- Retry with exponential backoff for timeouts, 5xx and rate limiting
- Non-retryable handling of authentication failures
- Skipping of seasons the provider has no file for (HTTP 404)
- Splitting of single files that hold every season (schedules)
"""

import httpx
import pandas as pd
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import io
import logging
import os

from core.exceptions import (
    AuthenticationError,
    FetchError,
    RateLimitError,
    ResourceNotFoundError,
    TransientFetchError,
)
from ingestion.categories import CategorySpec
from ingestion.retry import RetryPolicy
from models.base import Category

logger = logging.getLogger(__name__)


def parse_seasons(seasons: str) -> List[int]:
    """
    Parse ``"2024"`` or an inclusive range ``"1999:2024"``.

    Raises:
        ValueError: For anything else
    """
    text = seasons.strip()
    if ":" in text:
        parts = text.split(":")
        if len(parts) != 2 or not all(p.strip().isdigit() for p in parts):
            raise ValueError(f"Invalid seasons format '{seasons}'. Use format like '1999:2024'")
        first, last = int(parts[0]), int(parts[1])
        if first > last:
            raise ValueError(f"Invalid seasons range '{seasons}': start is after end")
        return list(range(first, last + 1))

    if not text.isdigit():
        raise ValueError(f"Invalid seasons format '{seasons}'. Use format like '1999:2024' or '2024'")
    return [int(text)]


@dataclass
class FetchResult:
    category: Category
    files: List[Path] = field(default_factory=list)
    missing_seasons: List[int] = field(default_factory=list)
    total_bytes: int = 0


class StatsFetcher:
    """
    Fetch category CSV files from URL templates such as
    ``https://.../player_stats_season_{season}.csv``.
    A template without ``{season}`` names one file holding every season.

    Attributes:
        timeout: Request timeout in seconds (default: 60.0)
    """

    def __init__(
        self,
        url_templates: Dict[Category, str],
        data_dir: str,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 60.0,
        api_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url_templates = url_templates
        self.data_dir = data_dir
        self.retry_policy = retry_policy or RetryPolicy(exhausted_error=FetchError)
        self.timeout = timeout
        self.api_token = api_token
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "text/csv, application/octet-stream"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def clean_old_files(self, spec: CategorySpec) -> int:
        directory = spec.source_dir(self.data_dir)
        if not directory.is_dir():
            return 0
        removed = 0
        for path in directory.iterdir():
            if path.is_file() and spec.file_pattern.search(path.name):
                logger.info(f"  Removing: {path.name}")
                path.unlink()
                removed += 1
        if removed:
            logger.info(f"Removed {removed} old files")
        return removed

    async def _download(self, client: httpx.AsyncClient, url: str, season: Optional[int] = None) -> bytes:
        context = {"url": url, "season": season}
        try:
            response = await client.get(url, headers=self._headers())
        except httpx.TimeoutException as e:
            raise TransientFetchError("Request timeout", context=context, original_exception=e)
        except httpx.TransportError as e:
            raise TransientFetchError("Network error", context=context, original_exception=e)

        context["status_code"] = response.status_code
        if response.status_code in (401, 403):
            raise AuthenticationError(f"Authentication failed for {url}", context=context)
        if response.status_code == 404:
            raise ResourceNotFoundError(f"No data file at {url}", context=context)
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"Rate limit exceeded for {url}",
                context=context,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None
            )
        if response.status_code >= 500:
            context["response_body"] = response.text[:500]
            raise TransientFetchError(f"Server error {response.status_code}", context=context)
        if response.status_code >= 400:
            raise FetchError(f"Unexpected status {response.status_code}", context=context)

        return response.content

    def _write_season_file(self, spec: CategorySpec, directory: Path, season: int, content: bytes,
                           result: FetchResult):
        path = directory / f"{spec.file_prefix}_{season}.csv"
        tmp_path = path.with_suffix(".csv.part")
        tmp_path.write_bytes(content)
        os.replace(tmp_path, path)

        result.files.append(path)
        result.total_bytes += len(content)
        logger.info(f"Season {season} - {round(len(content) / 1024 / 1024, 2)} MB")

    def split_by_season(self, content: bytes, url: str, seasons: List[int]) -> Dict[int, bytes]:
        """
        Split a file holding every season into one CSV per requested season.

        Raises:
            FetchError: If the file cannot be parsed or has no season column
        """
        try:
            df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, na_filter=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise FetchError("Failed to parse downloaded file", context={"url": url}, original_exception=e)

        if "season" not in df.columns:
            raise FetchError("Downloaded file has no season column", context={"url": url})

        parts = {}
        for season in seasons:
            rows = df[df["season"] == str(season)]
            if not rows.empty:
                parts[season] = rows.to_csv(index=False).encode("utf-8")
        return parts

    async def fetch(self, spec: CategorySpec, seasons: List[int], clean: bool = True) -> FetchResult:
        """
        Download one file per season into the category directory.

        A URL template without ``{season}`` points at a single file covering
        every season; it is downloaded once and split.

        Args:
            spec: Category to fetch
            seasons: Seasons to download
            clean: Remove previously fetched files of the category first

        Returns:
            FetchResult with the written files and the seasons that had no file

        Raises:
            AuthenticationError: Provider refused the request
            FetchError: A season could not be downloaded after every retry
        """
        template = self.url_templates[spec.category]
        directory = spec.source_dir(self.data_dir)
        directory.mkdir(parents=True, exist_ok=True)
        result = FetchResult(category=spec.category)

        logger.info(f"=== {spec.category.value.upper()} FETCH: Starting ===")
        logger.info(f"Seasons: {min(seasons)} to {max(seasons)}")
        logger.info(f"Output directory: {directory}")

        if clean:
            self.clean_old_files(spec)

        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True, transport=self.transport
        ) as client:
            if "{season}" in template:
                await self._fetch_per_season(client, spec, template, directory, seasons, result)
            else:
                await self._fetch_combined(client, spec, template, directory, seasons, result)

        logger.info(
            f"Files created: {len(result.files)}, seasons without data: {len(result.missing_seasons)}"
        )
        return result

    async def _fetch_per_season(self, client, spec, template, directory, seasons, result):
        for position, season in enumerate(seasons, start=1):
            url = template.format(season=season)
            logger.info(f"Processing season {season} ({position} of {len(seasons)})...")

            try:
                content = await self.retry_policy.run(
                    lambda: self._download(client, url, season),
                    description=f"download of {spec.category.value} season {season}"
                )
            except ResourceNotFoundError:
                logger.warning(f"Season {season} - No data found")
                result.missing_seasons.append(season)
                continue

            self._write_season_file(spec, directory, season, content, result)

    async def _fetch_combined(self, client, spec, url, directory, seasons, result):
        logger.info(f"Downloading {url} (all seasons)...")
        try:
            content = await self.retry_policy.run(
                lambda: self._download(client, url),
                description=f"download of {spec.category.value} data"
            )
        except ResourceNotFoundError:
            logger.warning(f"No {spec.category.value} data found at {url}")
            result.missing_seasons.extend(seasons)
            return

        parts = self.split_by_season(content, url, seasons)
        for season in seasons:
            if season not in parts:
                logger.warning(f"Season {season} - No data found")
                result.missing_seasons.append(season)
                continue
            self._write_season_file(spec, directory, season, parts[season], result)
