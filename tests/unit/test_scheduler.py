import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from core.config import Settings
from core.exceptions import FetchError
from ingestion.runner import RunSummary
from ingestion.scheduler import RefreshScheduler
from models.base import Category


@pytest.mark.asyncio
async def test_scheduler_initialization():
    scheduler = RefreshScheduler(Settings())
    assert scheduler.scheduler is not None
    assert scheduler.settings.REFRESH_INTERVAL_HOURS == 24.0


@pytest.mark.asyncio
async def test_refresh_job_fetches_then_uploads_with_reset():
    settings = Settings()
    with patch("ingestion.scheduler.run_fetch", new=AsyncMock()) as mock_fetch, \
            patch("ingestion.scheduler.run_upload", new=AsyncMock(return_value=RunSummary())) as mock_upload:
        scheduler = RefreshScheduler(settings)
        await scheduler.run_refresh_job()

        mock_fetch.assert_awaited_once_with(settings, list(Category))
        mock_upload.assert_awaited_once()
        assert mock_upload.await_args.kwargs["reset"] is True


@pytest.mark.asyncio
async def test_refresh_job_failure_is_logged_not_raised():
    with patch("ingestion.scheduler.run_fetch", new=AsyncMock(side_effect=FetchError("provider down"))), \
            patch("ingestion.scheduler.run_upload", new=AsyncMock()) as mock_upload:
        scheduler = RefreshScheduler(Settings())
        await scheduler.run_refresh_job()
        mock_upload.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_registers_single_interval_job():
    scheduler = RefreshScheduler(Settings(REFRESH_INTERVAL_HOURS=6))
    scheduler.scheduler = MagicMock()

    scheduler.start()

    kwargs = scheduler.scheduler.add_job.call_args.kwargs
    assert kwargs["id"] == "nfl_refresh_job"
    assert kwargs["max_instances"] == 1
    scheduler.scheduler.start.assert_called_once()

    scheduler.stop()
    scheduler.scheduler.shutdown.assert_called_once()
