"""
Pipeline components for fetching, normalizing and uploading NFL statistics.

Modules:
    categories: Per-category file layout, collection and key fields
    batching: Fixed-size batch partitioning with resume offsets
    checkpoint: File-backed checkpoint store and error log
    retry: Exponential backoff retry policy
    runner: Upload orchestrator (checkpointed batch upload engine)
    verifier: Post-upload document counts
    purge: Batched deletion of a collection
    pipeline: Wiring of settings and components for the entry points
    scheduler: APScheduler integration for periodic refreshes
    cli: Command line entry points

Subpackages:
    extractors: CSV source files and the stats provider fetcher
    transformers: Record normalization and document keys
    loaders: Destination store boundary, PostgreSQL store and batch writer

Architecture:
    The upload engine processes one category at a time:

    1. Scan and parse the category's CSV files into one record sequence
    2. Normalize every record (null markers, numbers, identifier text)
    3. Upload fixed-size batches in index order, each as one atomic upsert
       guarded by the retry policy
    4. Persist the checkpoint after every committed batch
    5. Count the documents of the category collection

    A failed batch is written to the error log and skipped; the checkpoint
    offset only covers the contiguous prefix of committed batches, so the
    next run retries it.

Usage:
    from core.config import Settings
    from ingestion.loaders.postgres_loader import PostgresDocumentStore
    from ingestion.runner import UploadOrchestrator
    from models.base import Category

Example:
    settings = Settings()
    store = PostgresDocumentStore.from_url(settings.DATABASE_URL)
    orchestrator = UploadOrchestrator(store, settings.upload_config())
    summary = await orchestrator.run([Category.SEASON])

    print(f"Uploaded {summary.results[Category.SEASON].success_count} records")
"""

__all__ = [
    "UploadOrchestrator",
    "BatchWriter",
    "RetryPolicy",
    "CheckpointStore",
    "ErrorLog",
    "RecordNormalizer",
    "DocumentKeyDeriver",
    "CSVExtractor",
    "StatsFetcher",
    "PostgresDocumentStore",
    "Verifier",
]
