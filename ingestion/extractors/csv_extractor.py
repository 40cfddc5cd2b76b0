"""
CSV source file extractor for one category
"""

import pandas as pd
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Dict
import logging

from core.exceptions import CSVExtractionError, SourceFilesNotFoundError
from ingestion.categories import CategorySpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceFile:
    name: str
    path: Path
    mtime: datetime


class CSVExtractor:
    """
    Read the CSV files of a category.

    Supports:
    - Several files per category (one per season), newest first by mtime
    - Raw text values: nothing is typed or NA-converted here, that is the
      normalizer's job
    """

    def __init__(self, spec: CategorySpec, data_dir: str):
        self.spec = spec
        self.directory = spec.source_dir(data_dir)

    def find_files(self) -> List[SourceFile]:
        """Files matching the category pattern, newest first"""
        if not self.directory.is_dir():
            return []

        files = [
            SourceFile(
                name=path.name,
                path=path,
                mtime=datetime.fromtimestamp(path.stat().st_mtime)
            )
            for path in self.directory.iterdir()
            if path.is_file() and self.spec.file_pattern.search(path.name)
        ]
        # Name breaks mtime ties so the record order, and with it the batch
        # boundaries, is stable across runs
        files.sort(key=lambda f: (-f.mtime.timestamp(), f.name))
        return files

    def read_file(self, path: Path) -> List[Dict[str, str]]:
        logger.info(f"  Parsing {path.name}...")
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, na_filter=False)
        except pd.errors.EmptyDataError:
            logger.warning(f"CSV file is empty: {path}")
            return []
        except (pd.errors.ParserError, UnicodeDecodeError, OSError) as e:
            raise CSVExtractionError(
                "Failed to parse CSV file",
                context={"file_path": str(path), "category": self.spec.category.value},
                original_exception=e
            )

        df.columns = df.columns.str.strip()
        return df.to_dict(orient="records")

    def extract(self) -> List[Dict[str, str]]:
        """
        Read every source file of the category into one record sequence.

        Raises:
            SourceFilesNotFoundError: If no file matches the category pattern
            CSVExtractionError: If a file cannot be parsed
        """
        files = self.find_files()
        if not files:
            raise SourceFilesNotFoundError(
                f"No {self.spec.category.value} data files found to upload",
                context={
                    "category": self.spec.category.value,
                    "directory": str(self.directory),
                    "pattern": self.spec.file_pattern.pattern,
                }
            )

        logger.info(f"Found {len(files)} {self.spec.category.value} data files:")
        for source_file in files:
            logger.info(f"  - {source_file.name}")

        records: List[Dict[str, str]] = []
        for source_file in files:
            records.extend(self.read_file(source_file.path))

        logger.info(
            f"Parsed {len(records)} total {self.spec.category.value} records "
            f"from {len(files)} files"
        )
        return records
