"""
Deterministic document keys from the natural key fields of a category
"""

from typing import Any, Mapping

from core.exceptions import MissingKeyFieldError
from ingestion.categories import CategorySpec

KEY_DELIMITER = "_"


def render_key_part(value: Any) -> str:
    """Render a key field; integral numbers lose their decimal point (2024.0 -> "2024")"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class DocumentKeyDeriver:
    """
    Build document keys such as ``2024_00-0033873`` (season, player_id) or
    ``2024_7_00-0033873`` (season, week, player_id).

    Two records with the same natural key collide on purpose: the later
    write replaces the earlier one, which keeps re-ingestion idempotent.
    """

    def __init__(self, spec: CategorySpec):
        self.spec = spec

    def derive(self, record: Mapping[str, Any]) -> str:
        parts = []
        for field in self.spec.key_fields:
            value = record.get(field)
            if value is None or value in ("", "NA", "null"):
                raise MissingKeyFieldError(
                    f"Key field '{field}' is missing",
                    context={
                        "category": self.spec.category.value,
                        "field_name": field,
                    }
                )
            parts.append(render_key_part(value))
        return KEY_DELIMITER.join(parts)
