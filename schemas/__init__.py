"""
Pydantic schemas for data validation and serialization.

Schemas:
    document: Normalized documents ready for the destination store
    checkpoint: Checkpoint file and error log entries

Usage:
    from schemas.document import Document
    from schemas.checkpoint import Checkpoint, CategoryProgress, ErrorRecord

Example:
    doc = Document(key="2024_00-0033873", fields={"season": 2024.0, "player_id": "00-0033873"})
    key, payload = doc.as_entry()
"""

__all__ = [
    "Document",
    "FieldValue",
    "Checkpoint",
    "CategoryProgress",
    "ErrorRecord",
]
