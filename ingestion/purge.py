"""
Batched deletion of every document in a collection
"""

import asyncio
from typing import Awaitable, Callable, Optional
import logging

from ingestion.loaders.document_store import DocumentStore
from ingestion.retry import RetryPolicy

logger = logging.getLogger(__name__)


class CollectionPurger:
    """
    Delete a collection in small batches with a pause between them, so a
    large collection does not run into destination limits.
    """

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = 100,
        batch_delay_seconds: float = 2.0,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.store = store
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep

    async def purge(self, collection: str) -> int:
        """
        Returns:
            Total number of deleted documents

        Raises:
            BatchWriteExhaustedError: If a delete batch keeps failing
        """
        total_deleted = 0
        batch_number = 0

        while True:
            deleted = await self.retry_policy.run(
                lambda: self.store.delete_many(collection, self.batch_size),
                description=f"delete batch {batch_number + 1} of {collection}"
            )
            if deleted == 0:
                break

            batch_number += 1
            total_deleted += deleted
            logger.info(f"{collection}: batch {batch_number} deleted {deleted} documents ({total_deleted} total)")

            if deleted < self.batch_size:
                break
            await self._sleep(self.batch_delay_seconds)

        logger.info(f"Deleted {total_deleted} documents from {collection}")
        return total_deleted
