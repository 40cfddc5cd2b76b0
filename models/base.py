from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class Category(str, enum.Enum):
    """Independent data lanes; each has its own collection and checkpoint entry"""
    SEASON = "season"
    WEEKLY = "weekly"
    ROSTER = "roster"
    SCHEDULE = "schedule"

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Case-insensitive lookup, raises ValueError for unknown names"""
        return cls(value.strip().lower())


class UploadStatus(str, enum.Enum):
    """Outcome of one category upload"""
    SUCCESS = "success"
    PARTIAL = "partial"
    SKIPPED = "skipped"
    INTERRUPTED = "interrupted"
