"""
SQLAlchemy ORM models for the destination store.

Models:
    base: Base declarative class and shared enums (Category, UploadStatus)
    document: Documents of every collection, keyed by (collection, doc_key)

Database Schema:
    All models inherit from the Base declarative class and use
    PostgreSQL-specific features like JSONB for the document payload.

Usage:
    from models.base import Base, Category
    from models.document import StoredDocument
"""

__all__ = [
    "Base",
    "Category",
    "UploadStatus",
    "StoredDocument",
]
