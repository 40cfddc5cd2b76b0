"""
File-backed checkpoint store and error log.

Both files are rewritten in full on every change through a temporary file in
the same directory followed by ``os.replace``, so a crash mid-write leaves the
previous version intact.

Precondition: one running upload owns these files. Concurrent invocations
against the same checkpoint file are not guarded against.
"""

from pathlib import Path
from typing import Any, List, Optional
import json
import logging
import os
import tempfile

from core.exceptions import CheckpointError
from schemas.checkpoint import Checkpoint, ErrorRecord

logger = logging.getLogger(__name__)


def _atomic_write_json(path: Path, data: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class CheckpointStore:
    """
    Durable per-category upload progress.

    I/O failures never abort an upload: a failed read behaves like a fresh
    start and a failed write means progress of that batch is not saved.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Checkpoint:
        """
        Read the checkpoint file.

        Raises:
            CheckpointError: If the file exists but cannot be read or parsed
        """
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                return Checkpoint.from_file_dict(json.load(handle))
        except (OSError, ValueError, TypeError) as e:
            raise CheckpointError(
                "Failed to read checkpoint",
                context={"checkpoint_file": str(self.path), "operation": "read"},
                original_exception=e
            )

    def load(self) -> Optional[Checkpoint]:
        """Return the stored checkpoint, or None for a fresh start"""
        if not self.exists():
            return None
        try:
            return self.read()
        except CheckpointError as e:
            logger.warning(f"Ignoring unreadable checkpoint, starting fresh: {e}")
            return None

    def save(self, checkpoint: Checkpoint) -> bool:
        try:
            _atomic_write_json(self.path, checkpoint.to_file_dict())
            return True
        except OSError as e:
            logger.error(f"Error writing checkpoint {self.path}: {e}")
            return False

    def clear(self) -> bool:
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Error deleting checkpoint {self.path}: {e}")
            return False


class ErrorLog:
    """Append-only list of error records kept as one JSON array"""

    def __init__(self, path: str):
        self.path = Path(path)

    def read(self) -> List[dict]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                entries = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning(f"Error log {self.path} unreadable, starting a new one: {e}")
            return []
        return entries if isinstance(entries, list) else []

    def append(self, error: str, context: str) -> Optional[ErrorRecord]:
        record = ErrorRecord(error=error, context=context)
        entries = self.read()
        entries.append(record.to_file_dict())
        try:
            _atomic_write_json(self.path, entries)
        except OSError as e:
            logger.error(f"Error writing error log {self.path}: {e}")
            return None
        return record
