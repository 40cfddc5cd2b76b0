"""
Transform raw CSV rows into typed document fields
"""

from typing import Dict, Any, Mapping
import math
import re
import logging

from ingestion.categories import CategorySpec
from ingestion.transformers.keys import DocumentKeyDeriver, render_key_part
from schemas.document import FieldValue

logger = logging.getLogger(__name__)

NULL_MARKERS = frozenset({"", "NA", "null"})

# Plain base-10 decimals only: no hex, no inf/nan, no surrounding whitespace
NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class RecordNormalizer:
    """
    Normalize rows of one category into document fields.

    Handles:
    - Null markers ("", "NA", "null")
    - Numeric inference for stat columns
    - Identifier columns that must stay text
    - Document key derivation
    """

    def __init__(self, spec: CategorySpec):
        self.spec = spec
        self.key_deriver = DocumentKeyDeriver(spec)

    def normalize(self, raw_record: Mapping[str, Any]) -> Dict[str, FieldValue]:
        """
        Normalize one row. Pure and total; field order is preserved.

        Returns:
            Mapping of field name to None, float or str
        """
        return {
            field: self._coerce(value, keep_text=field in self.spec.text_fields)
            for field, value in raw_record.items()
        }

    @staticmethod
    def _coerce(value: Any, keep_text: bool = False) -> FieldValue:
        if value is None:
            return None
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, (int, float)):
            if isinstance(value, float) and not math.isfinite(value):
                return None
            if keep_text:
                return render_key_part(value)
            return float(value)

        text = str(value)
        if text in NULL_MARKERS:
            return None
        if not keep_text and NUMBER_PATTERN.fullmatch(text):
            number = float(text)
            # "1e999" matches the pattern but overflows; keep it as text
            return number if math.isfinite(number) else text
        return text
