"""
Unit tests for record normalization and document keys
"""

import math

import pytest

from core.exceptions import MissingKeyFieldError
from ingestion.categories import get_spec
from ingestion.transformers.keys import DocumentKeyDeriver, render_key_part
from ingestion.transformers.normalizer import RecordNormalizer
from models.base import Category


@pytest.fixture
def season_normalizer():
    return RecordNormalizer(get_spec(Category.SEASON))


class TestRecordNormalizer:
    """Test field coercion rules"""

    def test_null_markers_become_none(self, season_normalizer):
        """Empty strings, NA and null are absent values"""
        result = season_normalizer.normalize({"a": "", "b": "NA", "c": "null", "d": None})
        assert result == {"a": None, "b": None, "c": None, "d": None}

    def test_null_markers_are_case_sensitive(self, season_normalizer):
        result = season_normalizer.normalize({"a": "na", "b": "NULL"})
        assert result == {"a": "na", "b": "NULL"}

    def test_numeric_strings_become_floats(self, season_normalizer):
        result = season_normalizer.normalize({
            "passing_yards": "4183",
            "fantasy_points": "301.5",
            "epa": "-0.25",
            "ratio": ".5",
            "big": "1e3",
        })
        assert result == {
            "passing_yards": 4183.0,
            "fantasy_points": 301.5,
            "epa": -0.25,
            "ratio": 0.5,
            "big": 1000.0,
        }
        assert all(isinstance(v, float) for v in result.values())

    def test_non_numeric_text_is_kept(self, season_normalizer):
        result = season_normalizer.normalize({
            "player_name": "P.Mahomes",
            "position": "QB",
            "padded": " 12",
            "hex": "0x1A",
            "inf": "inf",
            "nan": "nan",
        })
        assert result == {
            "player_name": "P.Mahomes",
            "position": "QB",
            "padded": " 12",
            "hex": "0x1A",
            "inf": "inf",
            "nan": "nan",
        }

    def test_overflowing_number_stays_text(self, season_normalizer):
        assert season_normalizer.normalize({"x": "1e999"}) == {"x": "1e999"}

    def test_identifier_fields_stay_text(self, season_normalizer):
        """Zero-padded and numeric-looking ids must not be converted"""
        result = season_normalizer.normalize({
            "player_id": "00-0033873",
            "espn_id": "3139477",
            "season": "2024",
        })
        assert result == {"player_id": "00-0033873", "espn_id": "3139477", "season": 2024.0}

    def test_identifier_nulls_still_become_none(self, season_normalizer):
        assert season_normalizer.normalize({"espn_id": "NA"}) == {"espn_id": None}

    def test_field_order_is_preserved(self, season_normalizer):
        raw = {"z": "1", "a": "x", "m": ""}
        assert list(season_normalizer.normalize(raw)) == ["z", "a", "m"]

    def test_already_typed_values(self, season_normalizer):
        result = season_normalizer.normalize({
            "count": 3,
            "rate": 0.5,
            "missing": float("nan"),
            "flag": True,
            "espn_id": 3139477,
        })
        assert result == {"count": 3.0, "rate": 0.5, "missing": None, "flag": "true", "espn_id": "3139477"}

    def test_normalization_is_idempotent(self, season_normalizer):
        raw = {"player_id": "00-0033873", "season": "2024", "yards": "12.5", "name": "A", "x": "NA"}
        once = season_normalizer.normalize(raw)
        assert season_normalizer.normalize(once) == once

    def test_infinite_float_value_becomes_none(self, season_normalizer):
        assert season_normalizer.normalize({"x": math.inf}) == {"x": None}


class TestDocumentKeyDeriver:
    """Test natural key derivation"""

    def test_season_key(self):
        deriver = DocumentKeyDeriver(get_spec(Category.SEASON))
        assert deriver.derive({"season": 2024.0, "player_id": "00-0033873"}) == "2024_00-0033873"

    def test_weekly_key_includes_week(self):
        deriver = DocumentKeyDeriver(get_spec(Category.WEEKLY))
        record = {"season": 2024.0, "week": 7.0, "player_id": "00-0033873"}
        assert deriver.derive(record) == "2024_7_00-0033873"

    def test_roster_key_uses_gsis_id(self):
        deriver = DocumentKeyDeriver(get_spec(Category.ROSTER))
        assert deriver.derive({"season": 2024.0, "gsis_id": "00-0036355"}) == "2024_00-0036355"

    def test_same_natural_key_same_document_key(self):
        deriver = DocumentKeyDeriver(get_spec(Category.SEASON))
        first = deriver.derive({"season": 2024.0, "player_id": "00-1", "yards": 10.0})
        second = deriver.derive({"season": 2024.0, "player_id": "00-1", "yards": 99.0})
        assert first == second

    @pytest.mark.parametrize("value", [None, "", "NA", "null"])
    def test_missing_key_field_raises(self, value):
        deriver = DocumentKeyDeriver(get_spec(Category.SEASON))
        with pytest.raises(MissingKeyFieldError) as exc_info:
            deriver.derive({"season": 2024.0, "player_id": value})
        assert exc_info.value.context["field_name"] == "player_id"
        assert exc_info.value.context["category"] == "season"

    def test_absent_key_field_raises(self):
        deriver = DocumentKeyDeriver(get_spec(Category.WEEKLY))
        with pytest.raises(MissingKeyFieldError):
            deriver.derive({"season": 2024.0, "player_id": "00-1"})

    def test_render_key_part(self):
        assert render_key_part(2024.0) == "2024"
        assert render_key_part(2.5) == "2.5"
        assert render_key_part("00-1") == "00-1"


class TestScheduleRecords:
    """Test game schedule rows"""

    def test_game_ids_stay_text(self):
        normalizer = RecordNormalizer(get_spec(Category.SCHEDULE))
        result = normalizer.normalize({
            "game_id": "2024_01_BAL_KC",
            "old_game_id": "2024090500",
            "espn": "401671789",
            "season": "2024",
            "home_score": "27",
        })
        assert result == {
            "game_id": "2024_01_BAL_KC",
            "old_game_id": "2024090500",
            "espn": "401671789",
            "season": 2024.0,
            "home_score": 27.0,
        }

    def test_key_is_game_id(self):
        deriver = DocumentKeyDeriver(get_spec(Category.SCHEDULE))
        assert deriver.derive({"game_id": "2024_01_BAL_KC", "season": 2024.0}) == "2024_01_BAL_KC"

    def test_missing_game_id_raises(self):
        deriver = DocumentKeyDeriver(get_spec(Category.SCHEDULE))
        with pytest.raises(MissingKeyFieldError) as exc_info:
            deriver.derive({"season": 2024.0, "game_id": None})
        assert exc_info.value.context["category"] == "schedule"
