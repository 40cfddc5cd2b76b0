"""
Write one batch of documents as a single retried upsert
"""

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union
import logging

from pydantic import ValidationError

from core.exceptions import (
    BatchWriteExhaustedError,
    MalformedRecordError,
    NonRetryableError,
)
from ingestion.batching import BatchRange
from ingestion.loaders.document_store import DocumentStore
from ingestion.retry import RetryPolicy
from ingestion.transformers.keys import DocumentKeyDeriver
from schemas.document import Document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchSuccess:
    batch: BatchRange
    documents_written: int


@dataclass(frozen=True)
class BatchFailure:
    batch: BatchRange
    error: Exception

    @property
    def retryable(self) -> bool:
        return not isinstance(self.error, NonRetryableError)


BatchOutcome = Union[BatchSuccess, BatchFailure]


class BatchWriter:
    """
    Upload one batch atomically through the destination store.

    The whole batch either commits or is reported as a BatchFailure; the
    caller never has to assume partial success. UploadInterrupted is the only
    exception that escapes ``write``.
    """

    def __init__(self, store: DocumentStore, key_deriver: DocumentKeyDeriver, retry_policy: RetryPolicy):
        self.store = store
        self.key_deriver = key_deriver
        self.retry_policy = retry_policy

    def build_documents(self, batch: BatchRange, records: Sequence[Mapping[str, Any]]) -> Sequence[Document]:
        documents = []
        for offset, fields in enumerate(records):
            try:
                key = self.key_deriver.derive(fields)
            except MalformedRecordError as e:
                e.context["record_index"] = batch.start + offset
                e.context["batch_index"] = batch.index
                raise
            try:
                documents.append(Document(key=key, fields=dict(fields)))
            except ValidationError as e:
                raise MalformedRecordError(
                    "Record cannot be stored as a document",
                    context={"record_index": batch.start + offset, "batch_index": batch.index},
                    original_exception=e
                )
        return documents

    async def write(
        self,
        collection: str,
        batch: BatchRange,
        records: Sequence[Mapping[str, Any]]
    ) -> BatchOutcome:
        """
        Args:
            collection: Destination collection
            batch: Range of the batch within the category sequence
            records: Normalized records of the batch

        Returns:
            BatchSuccess or BatchFailure
        """
        description = f"{collection} batch {batch.index + 1} (records {batch.start}-{batch.end})"

        try:
            documents = self.build_documents(batch, records)
        except MalformedRecordError as e:
            logger.error(f"Malformed record in {description}: {e}")
            return BatchFailure(batch=batch, error=e)

        entries = [document.as_entry() for document in documents]

        try:
            written = await self.retry_policy.run(
                lambda: self.store.upsert_many(collection, entries),
                description=description
            )
        except (BatchWriteExhaustedError, NonRetryableError) as e:
            return BatchFailure(batch=batch, error=e)

        return BatchSuccess(batch=batch, documents_written=written)
