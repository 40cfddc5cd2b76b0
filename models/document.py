from sqlalchemy import Column, String, BigInteger, DateTime, Index, func
from sqlalchemy.dialects.postgresql import JSONB
from models.base import Base


class StoredDocument(Base):
    """
    One document of a collection in the destination store.

    Purpose:
    - Hold every category collection (season_stats, weekly_stats, roster_data,
      games_schedule) in one table, partitioned by the collection column
    - Make re-uploads idempotent: (collection, doc_key) is unique and writes
      replace the whole payload

    Design Decisions:
    - JSONB payload keeps the document shape free-form per category
    - doc_key is the deterministic natural key of the record
    """
    __tablename__ = "documents"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    collection = Column(String(100), nullable=False)
    doc_key = Column(String(255), nullable=False)

    payload = Column(JSONB, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_documents_collection_key", "collection", "doc_key", unique=True),
    )

    def __repr__(self):
        return f"<StoredDocument(collection={self.collection}, doc_key={self.doc_key})>"
