"""
Post-upload document counts per category
"""

from typing import Optional
import logging

from core.exceptions import LoadError
from ingestion.categories import get_spec
from ingestion.loaders.document_store import DocumentStore
from models.base import Category

logger = logging.getLogger(__name__)


class Verifier:
    """Read-only check of how many documents a category collection holds"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def verify(self, category: Category) -> Optional[int]:
        """
        Returns:
            Document count, or None if the count could not be read
        """
        collection = get_spec(category).collection
        logger.info(f"Verifying {category.value} upload...")
        try:
            count = await self.store.count(collection)
        except LoadError as e:
            logger.error(f"Error during verification of {collection}: {e}")
            return None

        logger.info(f"  - {category.value} documents: {count}")
        return count
