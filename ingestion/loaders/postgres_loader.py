"""
Document store on PostgreSQL with upsert logic (idempotency)
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional, Sequence
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from core.database import create_engine, create_session_maker
from core.exceptions import (
    DatabaseConnectionError,
    DocumentRejectedError,
    LoadError,
    RateLimitError,
    UpsertError,
)
from ingestion.loaders.document_store import DocumentEntry, DocumentStore, dedupe_entries
from models.base import Base
from models.document import StoredDocument
import logging

logger = logging.getLogger(__name__)

CONNECTION_TEST_COLLECTION = "_test"
CONNECTION_TEST_KEY = "connection_test"


def translate_db_error(error: Exception, operation: str, collection: str) -> LoadError:
    """Map driver errors onto the retryable / non-retryable hierarchy"""
    context = {"operation": operation, "collection": collection}
    message = str(error).lower()

    if "too many connections" in message or "too many clients" in message:
        return RateLimitError(f"{operation} throttled by database", context=context, original_exception=error)

    if isinstance(error, (IntegrityError, DataError, ProgrammingError)):
        return DocumentRejectedError(f"{operation} rejected by database", context=context, original_exception=error)

    if isinstance(error, (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError,
                          OSError, asyncio.TimeoutError)):
        return DatabaseConnectionError(f"Database unavailable during {operation}", context=context,
                                       original_exception=error)

    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return DatabaseConnectionError(f"Connection lost during {operation}", context=context,
                                       original_exception=error)

    return UpsertError(f"{operation} failed", context=context, original_exception=error)


class PostgresDocumentStore(DocumentStore):
    """
    Collections stored as rows of the ``documents`` table.

    Ensures:
    - No duplicate documents on repeated uploads
    - Full replacement of a document whose key already exists
    - One transaction per ``upsert_many`` call
    """

    def __init__(self, session_maker: async_sessionmaker, engine: Optional[AsyncEngine] = None):
        self.session_maker = session_maker
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "PostgresDocumentStore":
        engine = create_engine(database_url, echo=echo)
        return cls(create_session_maker(engine), engine=engine)

    async def create_schema(self):
        """Create the documents table if it does not exist"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def upsert_many(self, collection: str, entries: Sequence[DocumentEntry]) -> int:
        """
        Upsert documents with INSERT ... ON CONFLICT (collection, doc_key) DO UPDATE.

        Args:
            collection: Destination collection name
            entries: (key, document) pairs; a repeated key keeps its last document

        Returns:
            Number of distinct keys written
        """
        latest = dedupe_entries(entries)
        if not latest:
            return 0

        rows = [
            {"collection": collection, "doc_key": key, "payload": payload}
            for key, payload in latest.items()
        ]
        stmt = insert(StoredDocument).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["collection", "doc_key"],
            set_={
                "payload": stmt.excluded.payload,
                "updated_at": func.now(),
            }
        )

        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await session.execute(stmt)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            raise translate_db_error(e, "UPSERT", collection)

        logger.debug(f"Upserted {len(rows)} documents into {collection}")
        return len(rows)

    async def count(self, collection: str) -> int:
        stmt = select(func.count()).select_from(StoredDocument).where(
            StoredDocument.collection == collection
        )
        try:
            async with self.session_maker() as session:
                result = await session.execute(stmt)
                return result.scalar_one()
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            raise translate_db_error(e, "COUNT", collection)

    async def ping(self):
        await self.upsert_many(
            CONNECTION_TEST_COLLECTION,
            [(CONNECTION_TEST_KEY, {"test": True, "timestamp": datetime.now(timezone.utc).isoformat()})]
        )

    async def delete_many(self, collection: str, limit: int) -> int:
        ids = (
            select(StoredDocument.id)
            .where(StoredDocument.collection == collection)
            .limit(limit)
        )
        stmt = delete(StoredDocument).where(StoredDocument.id.in_(ids))
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                return result.rowcount or 0
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            raise translate_db_error(e, "DELETE", collection)

    async def close(self):
        if self.engine is not None:
            await self.engine.dispose()
