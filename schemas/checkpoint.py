"""
Pydantic schemas for the checkpoint file and the error log.

Checkpoint file shape (camelCase keys are kept for the file format):

    {
        "season": {"lastIndex": 100, "completed": false},
        "weekly": {"lastIndex": 5400, "completed": true},
        "lastUpdate": "2024-09-10T12:00:00+00:00"
    }
"""

from pydantic import BaseModel, Field
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import logging

from models.base import Category

logger = logging.getLogger(__name__)


class CategoryProgress(BaseModel):
    """Upload progress of one category"""

    last_index: int = Field(0, ge=0, alias="lastIndex")
    completed: bool = False

    class Config:
        populate_by_name = True


class Checkpoint(BaseModel):
    """In-memory checkpoint owned by the orchestrator for one run"""

    categories: Dict[Category, CategoryProgress] = Field(default_factory=dict)
    last_update: Optional[datetime] = None

    def progress(self, category: Category) -> CategoryProgress:
        return self.categories.get(category, CategoryProgress())

    def record_progress(self, category: Category, last_index: int, total: int) -> CategoryProgress:
        """
        Store a new offset for the category.

        Offsets never move backwards; completed is derived from the offset.
        """
        current = self.progress(category)
        last_index = max(current.last_index, last_index)
        updated = CategoryProgress(last_index=last_index, completed=last_index >= total)
        self.categories[category] = updated
        self.last_update = datetime.now(timezone.utc)
        return updated

    def touch(self):
        self.last_update = datetime.now(timezone.utc)

    def reset(self, category: Category):
        self.categories.pop(category, None)
        self.last_update = datetime.now(timezone.utc)

    def all_completed(self) -> bool:
        return bool(self.categories) and all(p.completed for p in self.categories.values())

    def to_file_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            category.value: progress.model_dump(by_alias=True)
            for category, progress in self.categories.items()
        }
        data["lastUpdate"] = (self.last_update or datetime.now(timezone.utc)).isoformat()
        return data

    @classmethod
    def from_file_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        """
        Raises:
            ValueError: If the file content is not a checkpoint object
        """
        if not isinstance(data, dict):
            raise ValueError(f"Checkpoint must be a JSON object, got {type(data).__name__}")

        categories = {}
        for name, value in data.items():
            if name == "lastUpdate":
                continue
            try:
                category = Category.parse(name)
            except ValueError:
                logger.warning(f"Ignoring unknown checkpoint entry: {name}")
                continue
            categories[category] = CategoryProgress.model_validate(value)

        # pydantic parses the timestamp, including a trailing "Z"
        return cls(categories=categories, last_update=data.get("lastUpdate") or None)


class ErrorRecord(BaseModel):
    """One entry of the error log"""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: str
    context: str = ""

    def to_file_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
            "context": self.context,
        }
