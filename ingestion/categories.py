"""
Per-category layout: where the source files live, which collection they go
to, which fields form the document key and which fields are identifiers.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Tuple
import re

from models.base import Category

# Identifier columns produced by the stats provider; kept as text even when
# they look numeric (zero-padded GSIS ids, ESPN ids, ...)
PLAYER_ID_FIELDS = frozenset({
    "player_id",
    "gsis_id",
    "esb_id",
    "espn_id",
    "sportradar_id",
    "yahoo_id",
    "rotowire_id",
    "pff_id",
    "pfr_id",
    "fantasy_data_id",
    "sleeper_id",
    "gsis_it_id",
    "smart_id",
    "otc_id",
})

# Game identifiers of the schedule files (old_game_id such as 2024090500,
# nflverse and provider ids, starting quarterback gsis ids)
GAME_ID_FIELDS = frozenset({
    "game_id",
    "old_game_id",
    "gsis",
    "nfl_detail_id",
    "pfr",
    "pff",
    "espn",
    "ftn",
    "away_qb_id",
    "home_qb_id",
    "stadium_id",
})


@dataclass(frozen=True)
class CategorySpec:
    category: Category
    directory: str
    file_pattern: "re.Pattern[str]"
    file_prefix: str
    collection: str
    key_fields: Tuple[str, ...]
    text_fields: FrozenSet[str] = PLAYER_ID_FIELDS

    def source_dir(self, data_dir: str) -> Path:
        return Path(data_dir) / self.directory


CATEGORY_SPECS: Dict[Category, CategorySpec] = {
    Category.SEASON: CategorySpec(
        category=Category.SEASON,
        directory="season_stats",
        file_pattern=re.compile(r"season_data_.*\.csv$"),
        file_prefix="season_data",
        collection="season_stats",
        key_fields=("season", "player_id"),
    ),
    Category.WEEKLY: CategorySpec(
        category=Category.WEEKLY,
        directory="weekly_stats",
        file_pattern=re.compile(r"weekly_data_.*\.csv$"),
        file_prefix="weekly_data",
        collection="weekly_stats",
        key_fields=("season", "week", "player_id"),
    ),
    Category.ROSTER: CategorySpec(
        category=Category.ROSTER,
        directory="roster_data",
        file_pattern=re.compile(r"roster_data_.*\.csv$"),
        file_prefix="roster_data",
        collection="roster_data",
        key_fields=("season", "gsis_id"),
    ),
    Category.SCHEDULE: CategorySpec(
        category=Category.SCHEDULE,
        directory="schedule_data",
        file_pattern=re.compile(r"schedule_data_.*\.csv$"),
        file_prefix="schedule_data",
        collection="games_schedule",
        key_fields=("game_id",),
        text_fields=GAME_ID_FIELDS,
    ),
}


def get_spec(category: Category) -> CategorySpec:
    return CATEGORY_SPECS[category]
