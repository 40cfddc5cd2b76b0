# ============================================================================
# File: ingestion/runner.py
# Description: Checkpointed batch upload orchestrator
# ============================================================================
"""
Upload Orchestrator - drives the checkpointed batch upload of each category.

Run lifecycle:

    Init -> ConnectionCheck -> LoadCheckpoint
         -> per category: Scanning -> Parsing -> Uploading -> Verifying
         -> Summarize -> Done

This module provides:
- Strictly ordered batch uploads, one category at a time
- Partial failure support (a failed batch is logged and skipped)
- Checkpoint persistence after every committed batch
- Resume from the last contiguous committed offset
- Cooperative stop between batches and between retry attempts
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence
import logging

from core.config import UploadConfig
from core.exceptions import (
    DatabaseConnectionError,
    ETLException,
    UploadInterrupted,
)
from ingestion.batching import iter_batches, total_batches
from ingestion.categories import get_spec
from ingestion.checkpoint import CheckpointStore, ErrorLog
from ingestion.extractors.csv_extractor import CSVExtractor
from ingestion.loaders.batch_writer import BatchFailure, BatchSuccess, BatchWriter
from ingestion.loaders.document_store import DocumentStore
from ingestion.retry import RetryPolicy, interruptible_sleep
from ingestion.transformers.normalizer import RecordNormalizer
from ingestion.verifier import Verifier
from models.base import Category, UploadStatus
from schemas.checkpoint import Checkpoint, CategoryProgress

logger = logging.getLogger(__name__)


@dataclass
class CategoryResult:
    category: Category
    status: UploadStatus
    total_records: int = 0
    success_count: int = 0
    error_count: int = 0
    failed_batches: List[int] = field(default_factory=list)
    verified_count: Optional[int] = None
    progress: CategoryProgress = field(default_factory=CategoryProgress)


@dataclass
class RunSummary:
    results: Dict[Category, CategoryResult] = field(default_factory=dict)
    checkpoint_cleared: bool = False
    interrupted: bool = False
    duration_seconds: float = 0.0

    @property
    def error_count(self) -> int:
        return sum(r.error_count for r in self.results.values())


class UploadOrchestrator:
    """
    Checkpointed batch upload engine.

    Responsibilities:
    - Verify the destination is reachable before touching any state
    - Own the in-memory checkpoint and be its only writer
    - Upload each category batch by batch, in index order
    - Record failed batches without blocking later ones
    - Clear the checkpoint once every category in it is completed
    """

    def __init__(
        self,
        store: DocumentStore,
        config: UploadConfig,
        stop_event: Optional[asyncio.Event] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        checkpoint_store: Optional[CheckpointStore] = None,
        error_log: Optional[ErrorLog] = None
    ):
        self.store = store
        self.config = config
        self.stop_event = stop_event or asyncio.Event()
        self._sleep = sleep or (lambda delay: interruptible_sleep(delay, self.stop_event))
        self.checkpoint_store = checkpoint_store or CheckpointStore(config.checkpoint_file)
        self.error_log = error_log or ErrorLog(config.error_log_file)
        self.retry_policy = RetryPolicy(
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay_seconds,
            stop_event=self.stop_event,
            sleep=sleep
        )
        self.verifier = Verifier(store)
        self.checkpoint = Checkpoint()

    def request_stop(self):
        """Stop after the in-flight batch attempt; safe to call from a signal handler"""
        if not self.stop_event.is_set():
            logger.warning("Stop requested, finishing the in-flight batch before exiting")
        self.stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self.stop_event.is_set()

    async def check_connection(self):
        """
        Raises:
            DatabaseConnectionError: If the destination cannot be written to
        """
        logger.info("Testing destination connection...")
        try:
            await self.store.ping()
        except Exception as e:
            logger.error(f"Destination connection failed: {e}")
            raise DatabaseConnectionError(
                "Cannot proceed without a destination connection",
                context={"operation": "PING"},
                original_exception=e
            )
        logger.info("Destination connection successful")

    def load_checkpoint(self) -> Checkpoint:
        checkpoint = self.checkpoint_store.load()
        if checkpoint is None:
            logger.info("No checkpoint found, starting fresh upload")
            checkpoint = Checkpoint()
        else:
            logger.info(f"Resuming from checkpoint: {checkpoint.last_update}")
        self.checkpoint = checkpoint
        return checkpoint

    def _save_checkpoint(self):
        if not self.checkpoint_store.save(self.checkpoint):
            logger.warning("Progress of this batch was not saved")

    async def run(self, categories: Sequence[Category], reset: bool = False) -> RunSummary:
        """
        Run the full upload for the requested categories.

        Args:
            categories: Categories to upload, processed in the given order
            reset: Drop the checkpoint entries of the requested categories first

        Returns:
            RunSummary with one CategoryResult per processed category

        Raises:
            DatabaseConnectionError: Destination unreachable at startup
            SourceFilesNotFoundError: A requested category has no source files
            CSVExtractionError: A source file cannot be parsed
        """
        started = time.monotonic()
        summary = RunSummary()

        logger.info(
            f"Starting upload for {', '.join(c.value for c in categories)} "
            f"(batch size={self.config.batch_size}, delay={self.config.batch_delay_seconds}s, "
            f"max retries={self.config.max_retries})"
        )

        # --------------------------------------------------
        # CONNECTION CHECK
        # --------------------------------------------------
        await self.check_connection()

        # --------------------------------------------------
        # LOAD CHECKPOINT
        # --------------------------------------------------
        self.load_checkpoint()
        if reset:
            for category in categories:
                logger.info(f"Resetting checkpoint for {category.value}")
                self.checkpoint.reset(category)
            self._save_checkpoint()

        # --------------------------------------------------
        # PER CATEGORY
        # --------------------------------------------------
        for category in categories:
            if self.stop_requested:
                summary.interrupted = True
                break

            result = await self.upload_category(category)
            summary.results[category] = result

            if result.status == UploadStatus.INTERRUPTED:
                summary.interrupted = True
                break

        # --------------------------------------------------
        # SUMMARIZE
        # --------------------------------------------------
        requested_complete = all(
            self.checkpoint.progress(category).completed for category in categories
        )
        if not summary.interrupted and requested_complete and self.checkpoint.all_completed():
            if self.checkpoint_store.clear():
                logger.info("Checkpoint file deleted (all uploads complete)")
            summary.checkpoint_cleared = True

        summary.duration_seconds = time.monotonic() - started
        self._log_summary(summary)
        return summary

    async def upload_category(self, category: Category) -> CategoryResult:
        spec = get_spec(category)

        # --------------------------------------------------
        # SCANNING + PARSING
        # --------------------------------------------------
        raw_records = CSVExtractor(spec, self.config.data_dir).extract()
        normalizer = RecordNormalizer(spec)
        records = [normalizer.normalize(row) for row in raw_records]
        total = len(records)

        result = CategoryResult(category=category, status=UploadStatus.SUCCESS, total_records=total)

        progress = self.checkpoint.progress(category)
        if progress.completed:
            logger.info(f"{category.value} data already complete, skipping...")
            result.status = UploadStatus.SKIPPED
            result.progress = progress
            result.verified_count = await self.verifier.verify(category)
            return result

        if progress.last_index > total:
            logger.warning(
                f"{category.value}: checkpoint offset {progress.last_index} is beyond the "
                f"{total} records found, source data changed; restarting from 0"
            )
            self.checkpoint.reset(category)

        # --------------------------------------------------
        # UPLOADING
        # --------------------------------------------------
        writer = BatchWriter(self.store, normalizer.key_deriver, self.retry_policy)
        await self._upload_batches(spec.collection, records, writer, result)

        result.progress = self.checkpoint.progress(category)
        if result.status != UploadStatus.INTERRUPTED and result.error_count:
            result.status = UploadStatus.PARTIAL

        # --------------------------------------------------
        # VERIFYING
        # --------------------------------------------------
        result.verified_count = await self.verifier.verify(category)
        return result

    async def _upload_batches(
        self,
        collection: str,
        records: List[dict],
        writer: BatchWriter,
        result: CategoryResult
    ):
        category = result.category
        total = len(records)
        batch_size = self.config.batch_size
        start_index = self.checkpoint.progress(category).last_index
        batch_count = total_batches(total, batch_size)

        logger.info(f"Starting {category.value} upload...")
        logger.info(f"{category.value}: {total} records, starting from index {start_index}")
        logger.info(f"Total batches: {batch_count}, starting from batch {start_index // batch_size + 1}")

        # An empty category is completed right away
        self.checkpoint.record_progress(category, start_index, total)
        self._save_checkpoint()
        if total == 0:
            return

        for batch in iter_batches(total, batch_size, start_index):
            if self.stop_requested:
                result.status = UploadStatus.INTERRUPTED
                break

            try:
                outcome = await writer.write(collection, batch, records[batch.start:batch.end])
            except UploadInterrupted as e:
                logger.warning(f"{category.value}: {e.message}")
                result.status = UploadStatus.INTERRUPTED
                break

            if isinstance(outcome, BatchSuccess):
                result.success_count += batch.size
                # Only a batch that continues the committed prefix moves the offset
                if batch.start <= self.checkpoint.progress(category).last_index:
                    self.checkpoint.record_progress(category, batch.end, total)
                else:
                    self.checkpoint.touch()
                self._save_checkpoint()

                progress_pct = (batch.index + 1) / batch_count * 100
                logger.info(
                    f"{category.value}: Batch {batch.index + 1}/{batch_count} complete "
                    f"({progress_pct:.1f}%) - {result.success_count} records uploaded"
                )
            else:
                self._record_failure(category, outcome, result)

            if batch.index < batch_count - 1 and self.config.batch_delay_seconds > 0:
                await self._sleep(self.config.batch_delay_seconds)

        logger.info(
            f"{category.value} upload complete: {result.success_count} successful, "
            f"{result.error_count} errors"
        )

    def _record_failure(self, category: Category, outcome: BatchFailure, result: CategoryResult):
        batch = outcome.batch
        result.error_count += batch.size
        result.failed_batches.append(batch.index)

        error = outcome.error
        message = error.message if isinstance(error, ETLException) else str(error)
        cause = getattr(error, "original_exception", None)
        if cause is not None:
            message = f"{message}: {cause}"

        self.error_log.append(
            message,
            f"{category.value} batch {batch.index + 1} (records {batch.start}-{batch.end})"
        )
        logger.error(
            f"Error in {category.value} batch {batch.index + 1}: {message}",
            extra={"error_context": error.to_dict() if isinstance(error, ETLException) else {}}
        )

    def _log_summary(self, summary: RunSummary):
        logger.info("=== UPLOAD COMPLETE ===" if not summary.interrupted else "=== UPLOAD INTERRUPTED ===")
        logger.info(f"Total time: {round(summary.duration_seconds)} seconds")

        for category, result in summary.results.items():
            verified = "unknown" if result.verified_count is None else result.verified_count
            logger.info(
                f"{category.value}: {result.success_count} uploaded, {result.error_count} errors, "
                f"{verified} documents verified ({result.status.value})"
            )

        if summary.error_count > 0:
            logger.warning(
                f"{summary.error_count} records failed to upload. "
                f"Check {self.error_log.path} for details."
            )
        elif not summary.interrupted:
            logger.info("Upload completed successfully with no errors")
