"""Table field schema."""

from tableprovider.schema.fields import (
    FieldDefinition,
    FieldSchema,
    field_index,
    normalize_fields,
)

__all__ = ["FieldDefinition", "FieldSchema", "field_index", "normalize_fields"]
