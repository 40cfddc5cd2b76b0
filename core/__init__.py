"""
Core utilities and configuration for the NFL stats upload pipeline.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Settings loaded from the environment and the UploadConfig handed
        to the orchestrator
    database: Async engine and session factory creation
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import Settings
    from core.database import create_engine, create_session_maker
    from core.exceptions import MissingKeyFieldError, BatchWriteExhaustedError
    from core.logging import setup_logging

Example:
    settings = Settings()
    setup_logging(settings.LOG_LEVEL)

    engine = create_engine(settings.DATABASE_URL)
    session_maker = create_session_maker(engine)
"""

__all__ = [
    "Settings",
    "UploadConfig",
    "create_engine",
    "create_session_maker",
    "setup_logging",
    # Exceptions
    "ETLException",
    "RetryableError",
    "NonRetryableError",
    "ExtractionError",
    "SourceFilesNotFoundError",
    "CSVExtractionError",
    "FetchError",
    "TransformationError",
    "MalformedRecordError",
    "MissingKeyFieldError",
    "LoadError",
    "DatabaseError",
    "UpsertError",
    "DatabaseConnectionError",
    "RateLimitError",
    "DocumentRejectedError",
    "BatchWriteExhaustedError",
    "CheckpointError",
    "UploadInterrupted",
]
