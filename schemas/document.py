"""
Pydantic schemas for normalized documents
"""

from pydantic import BaseModel, Field
from typing import Dict, Optional, Union

FieldValue = Optional[Union[float, str]]


class Document(BaseModel):
    """
    A normalized record ready for storage.

    Ensures:
    - The key is a non-empty deterministic natural key
    - Every value is null, a number or text
    """

    key: str = Field(..., min_length=1, max_length=255)
    fields: Dict[str, FieldValue] = Field(default_factory=dict)

    class Config:
        frozen = True

    def as_entry(self):
        """(key, payload) pair as consumed by DocumentStore.upsert_many"""
        return self.key, dict(self.fields)
