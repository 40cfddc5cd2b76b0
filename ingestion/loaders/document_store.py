"""
Destination store boundary used by the upload engine
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence, Tuple

DocumentEntry = Tuple[str, Dict[str, Any]]


class DocumentStore(ABC):
    """
    Minimal document store contract.

    The upload engine needs only ``upsert_many`` (atomic per call:
    insert-or-replace by key) and ``count``. ``ping`` backs the startup
    connection check and ``delete_many`` the collection purge.
    """

    @abstractmethod
    async def upsert_many(self, collection: str, entries: Sequence[DocumentEntry]) -> int:
        """
        Insert or fully replace every (key, document) pair in one atomic write.

        Returns:
            Number of distinct keys written
        """
        pass

    @abstractmethod
    async def count(self, collection: str) -> int:
        """Number of documents currently stored in ``collection``"""
        pass

    @abstractmethod
    async def ping(self):
        """Lightweight read/write probe; raises if the store is unreachable"""
        pass

    @abstractmethod
    async def delete_many(self, collection: str, limit: int) -> int:
        """Delete up to ``limit`` documents of ``collection``, returning how many went"""
        pass

    async def close(self):
        pass


def dedupe_entries(entries: Sequence[DocumentEntry]) -> Dict[str, Dict[str, Any]]:
    """Collapse repeated keys within one write; the last entry wins"""
    latest: Dict[str, Dict[str, Any]] = {}
    for key, document in entries:
        latest[key] = document
    return latest
