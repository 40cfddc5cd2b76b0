"""
Integration tests for the complete upload pipeline against an in-memory store
"""

from pathlib import Path

import pytest

from conftest import (
    ROSTER_HEADER,
    SCHEDULE_HEADER,
    SEASON_HEADER,
    WEEKLY_HEADER,
    season_rows,
    write_csv,
)
from core.exceptions import DatabaseConnectionError, SourceFilesNotFoundError
from ingestion.runner import UploadOrchestrator
from models.base import Category, UploadStatus


def make_orchestrator(store, config, sleep, stop_event=None):
    return UploadOrchestrator(store, config, stop_event=stop_event, sleep=sleep)


def write_season_file(data_dir: Path, count: int, name: str = "season_data_2024.csv"):
    return write_csv(data_dir / "season_stats" / name, SEASON_HEADER, season_rows(count))


class TestUploadPipeline:
    """Test complete upload runs"""

    @pytest.mark.asyncio
    async def test_full_upload(self, memory_store, upload_config, data_dir, recorded_sleeps):
        """Every record stored, checkpoint removed, nothing in the error log"""
        write_season_file(data_dir, 230)

        summary = await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SEASON])

        result = summary.results[Category.SEASON]
        assert result.status == UploadStatus.SUCCESS
        assert result.total_records == 230
        assert result.success_count == 230
        assert result.error_count == 0
        assert result.verified_count == 230
        assert len(memory_store.upsert_calls) == 5
        assert [len(call) for call in memory_store.upsert_calls] == [50, 50, 50, 50, 30]

        assert summary.checkpoint_cleared is True
        assert not Path(upload_config.checkpoint_file).exists()
        assert not Path(upload_config.error_log_file).exists()

    @pytest.mark.asyncio
    async def test_documents_are_normalized(self, memory_store, upload_config, data_dir, recorded_sleeps):
        write_csv(
            data_dir / "season_stats" / "season_data_2024.csv",
            SEASON_HEADER,
            [["00-0033873", "P.Mahomes", "QB", "2024", "4183", "NA"]]
        )

        await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SEASON])

        assert memory_store.documents("season_stats") == {
            "2024_00-0033873": {
                "player_id": "00-0033873",
                "player_name": "P.Mahomes",
                "position": "QB",
                "season": 2024.0,
                "passing_yards": 4183.0,
                "fantasy_points": None,
            }
        }

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, memory_store, upload_config, data_dir, recorded_sleeps):
        """A second full run overwrites the same keys"""
        write_season_file(data_dir, 120)

        await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SEASON])
        first = dict(memory_store.documents("season_stats"))
        await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SEASON])

        assert memory_store.documents("season_stats") == first
        assert len(first) == 120

    @pytest.mark.asyncio
    async def test_duplicate_natural_keys_last_wins(self, memory_store, upload_config, data_dir, recorded_sleeps):
        write_csv(
            data_dir / "season_stats" / "season_data_2024.csv",
            SEASON_HEADER,
            [
                ["00-1", "Early", "QB", "2024", "10", "1"],
                ["00-2", "Other", "RB", "2024", "20", "2"],
                ["00-1", "Late", "QB", "2024", "30", "3"],
            ]
        )

        summary = await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SEASON])

        assert summary.results[Category.SEASON].verified_count == 2
        assert memory_store.documents("season_stats")["2024_00-1"]["player_name"] == "Late"

    @pytest.mark.asyncio
    async def test_all_categories_in_order(self, memory_store, upload_config, data_dir, recorded_sleeps):
        write_season_file(data_dir, 3)
        write_csv(
            data_dir / "weekly_stats" / "weekly_data_2024.csv",
            WEEKLY_HEADER,
            [["00-1", "A", "2024", "1", "10"], ["00-1", "A", "2024", "2", "12"]]
        )
        write_csv(
            data_dir / "roster_data" / "roster_data_2024.csv",
            ROSTER_HEADER,
            [["2024", "00-0036355", "J.Herbert", "LAC", "4038941", "10"]]
        )
        write_csv(
            data_dir / "schedule_data" / "schedule_data_2024.csv",
            SCHEDULE_HEADER,
            [["2024_01_BAL_KC", "2024", "1", "KC", "BAL", "27", "2024090500"]]
        )

        summary = await make_orchestrator(memory_store, upload_config, recorded_sleeps).run(list(Category))

        assert list(summary.results) == [Category.SEASON, Category.WEEKLY, Category.ROSTER, Category.SCHEDULE]
        assert set(memory_store.documents("weekly_stats")) == {"2024_1_00-1", "2024_2_00-1"}
        roster = memory_store.documents("roster_data")["2024_00-0036355"]
        assert roster["espn_id"] == "4038941"
        assert roster["jersey_number"] == 10.0
        game = memory_store.documents("games_schedule")["2024_01_BAL_KC"]
        assert game["old_game_id"] == "2024090500"
        assert game["home_score"] == 27.0
        assert summary.checkpoint_cleared is True

    @pytest.mark.asyncio
    async def test_schedule_upload_keys_by_game(self, memory_store, upload_config, data_dir, recorded_sleeps):
        write_csv(
            data_dir / "schedule_data" / "schedule_data_2024.csv",
            SCHEDULE_HEADER,
            [
                ["2024_01_BAL_KC", "2024", "1", "KC", "BAL", "27", "2024090500"],
                ["2024_01_GB_PHI", "2024", "1", "PHI", "GB", "NA", "2024090600"],
            ]
        )

        summary = await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SCHEDULE])

        result = summary.results[Category.SCHEDULE]
        assert result.status == UploadStatus.SUCCESS
        assert result.verified_count == 2
        games = memory_store.documents("games_schedule")
        assert set(games) == {"2024_01_BAL_KC", "2024_01_GB_PHI"}
        assert games["2024_01_GB_PHI"]["home_score"] is None
        assert games["2024_01_GB_PHI"]["old_game_id"] == "2024090600"

    @pytest.mark.asyncio
    async def test_empty_category_completes(self, memory_store, upload_config, data_dir, recorded_sleeps):
        write_csv(data_dir / "season_stats" / "season_data_2024.csv", SEASON_HEADER, [])

        summary = await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SEASON])

        result = summary.results[Category.SEASON]
        assert result.total_records == 0
        assert result.progress.completed is True
        assert memory_store.upsert_calls == []
        assert summary.checkpoint_cleared is True

    @pytest.mark.asyncio
    async def test_batch_delay_between_batches_only(self, memory_store, upload_config, data_dir, recorded_sleeps):
        write_season_file(data_dir, 120)
        config = upload_config.model_copy(update={"batch_delay_seconds": 2.0})

        await make_orchestrator(memory_store, config, recorded_sleeps).run([Category.SEASON])

        assert recorded_sleeps.delays == [2.0, 2.0]


class TestFatalConditions:
    """Test conditions that abort the run"""

    @pytest.mark.asyncio
    async def test_unreachable_destination(self, memory_store, upload_config, data_dir, recorded_sleeps):
        write_season_file(data_dir, 10)
        memory_store.ping_error = ConnectionRefusedError("connection refused")

        with pytest.raises(DatabaseConnectionError):
            await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SEASON])

        assert memory_store.upsert_calls == []
        assert not Path(upload_config.checkpoint_file).exists()

    @pytest.mark.asyncio
    async def test_missing_source_files(self, memory_store, upload_config, recorded_sleeps):
        with pytest.raises(SourceFilesNotFoundError):
            await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.WEEKLY])
        assert memory_store.upsert_calls == []

    @pytest.mark.asyncio
    async def test_verification_failure_is_not_fatal(self, memory_store, upload_config, data_dir, recorded_sleeps):
        write_season_file(data_dir, 10)
        memory_store.count_error = DatabaseConnectionError("count failed")

        summary = await make_orchestrator(memory_store, upload_config, recorded_sleeps).run([Category.SEASON])

        assert summary.results[Category.SEASON].verified_count is None
        assert summary.results[Category.SEASON].status == UploadStatus.SUCCESS