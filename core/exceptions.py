"""
Custom exceptions for the upload pipeline with structured error context.

Every exception carries context information that ends up in the error log
and in log lines, so a failed batch can be traced back to its category,
batch index and record range.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   ├── SourceFilesNotFoundError
    │   ├── CSVExtractionError
    │   └── FetchError
    ├── TransformationError
    │   └── MalformedRecordError
    │       └── MissingKeyFieldError
    ├── LoadError
    │   ├── UpsertError
    │   ├── DatabaseError
    │   └── BatchWriteExhaustedError
    ├── CheckpointError
    ├── UploadInterrupted
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (category, batch, file, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting / quota exhaustion
    - Temporary database connection issues
    """
    pass


class NonRetryableError(ETLException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Missing key fields in a record
    - Documents rejected by the destination store
    - Authentication failures
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for source data failures."""
    pass


class SourceFilesNotFoundError(ExtractionError):
    """
    Raised when no source files exist for a requested category.

    Context should include:
        - category: The requested category
        - directory: Directory that was scanned
        - pattern: File name pattern that was matched
    """
    pass


class CSVExtractionError(ExtractionError):
    """
    Raised when a source CSV file cannot be parsed.

    Context should include:
        - file_path: Path to the CSV file
    """
    pass


class FetchError(ExtractionError):
    """
    Raised when downloading statistics from the provider fails.

    Context should include:
        - url: The URL that failed
        - status_code: HTTP status code (if applicable)
        - season: Season being fetched
    """
    pass


class TransientFetchError(RetryableError, FetchError):
    """Provider timeouts, network errors and 5xx responses."""
    pass


class AuthenticationError(NonRetryableError, FetchError):
    """Provider refused the request (HTTP 401, 403)."""
    pass


class ResourceNotFoundError(NonRetryableError, FetchError):
    """Provider has no file for the requested season (HTTP 404)."""
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for record transformation failures."""
    pass


class MalformedRecordError(NonRetryableError, TransformationError):
    """
    Raised when a record cannot be turned into a document.

    Context should include:
        - category: Category of the record
        - record_index: Position of the record in the category sequence
    """
    pass


class MissingKeyFieldError(MalformedRecordError):
    """
    Raised when a field used for the document key is missing or null.

    Context should include:
        - category: Category of the record
        - field_name: The key field that is missing
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for destination store failures."""
    pass


class DatabaseError(LoadError):
    """
    Raised when destination store operations fail.

    Context should include:
        - operation: Type of operation (UPSERT, COUNT, DELETE, PING)
        - collection: Name of the collection
    """
    pass


class UpsertError(RetryableError, LoadError):
    """
    Raised when a batch upsert fails for an unclassified reason.

    Context should include:
        - collection: Destination collection
        - batch_size: Number of documents in the failed write
    """
    pass


class DatabaseConnectionError(RetryableError, DatabaseError):
    """Destination unreachable or connection dropped."""
    pass


class RateLimitError(RetryableError, LoadError):
    """Destination or provider quota exhausted; retried with a longer backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class DocumentRejectedError(NonRetryableError, DatabaseError):
    """Destination rejected the documents themselves (bad data, constraint)."""
    pass


class BatchWriteExhaustedError(LoadError):
    """
    Raised when a batch write still fails after every retry attempt.

    Context should include:
        - attempts: Number of attempts made
        - operation: Description of the retried operation
    """
    pass


# ============================================================================
# Bookkeeping Errors
# ============================================================================

class CheckpointError(ETLException):
    """
    Raised when the checkpoint file cannot be read or written.

    Context should include:
        - checkpoint_file: Path of the checkpoint file
        - operation: Operation that failed (read, write, delete)
    """
    pass


class UploadInterrupted(ETLException):
    """Raised when a stop was requested before the next attempt could start."""
    pass
