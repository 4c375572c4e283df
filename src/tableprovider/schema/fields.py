"""Field schema: ordered table columns and their capabilities."""

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

PLACEHOLDER_KEY = ""


class FieldDefinition(BaseModel):
    """A single table column. Its position in the schema is its wire column index."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    key: str = Field(default=PLACEHOLDER_KEY, description="Row attribute the column shows; empty for placeholders")
    name: Optional[str] = Field(default=None, description="Display name")
    orderable: bool = Field(default=True, description="Whether the column may be sorted on")
    searchable: bool = Field(default=True, description="Whether the column accepts search values")

    @property
    def is_placeholder(self) -> bool:
        """Placeholder columns hold a position but never sort or search."""
        return self.key == PLACEHOLDER_KEY


FieldSchema = Tuple[FieldDefinition, ...]

FieldInput = Union[FieldDefinition, str, Mapping[str, Any]]


def _to_definition(entry: FieldInput, key: Optional[str] = None) -> FieldDefinition:
    if isinstance(entry, FieldDefinition):
        return entry
    if isinstance(entry, str):
        return FieldDefinition(key=entry)
    if isinstance(entry, Mapping):
        data: Dict[str, Any] = dict(entry)
        if key is not None:
            data.setdefault("key", key)
        if data.get("key") is None:
            data["key"] = PLACEHOLDER_KEY
        return FieldDefinition.model_validate(data)
    raise ValueError(f"Unsupported field definition: {entry!r}")


def normalize_fields(fields: Union[None, Iterable[FieldInput], Mapping[str, Any]]) -> FieldSchema:
    """
    Build an immutable schema from the accepted field shapes.

    Accepts a sequence of FieldDefinition / dict / str entries, or a mapping of
    key -> definition dict (insertion order is the column order).

    Args:
        fields: Field definitions, or None for an empty schema

    Returns:
        Tuple of FieldDefinition in column order

    Raises:
        ValueError: If an entry has an unsupported shape
    """
    if fields is None:
        return ()
    if isinstance(fields, Mapping):
        return tuple(
            _to_definition(value if isinstance(value, Mapping) else {}, key=key)
            for key, value in fields.items()
        )
    return tuple(_to_definition(entry) for entry in fields)


def field_index(schema: FieldSchema) -> Dict[str, int]:
    """Map each non-placeholder key to its first column index."""
    index: Dict[str, int] = {}
    for position, field in enumerate(schema):
        if field.is_placeholder:
            continue
        index.setdefault(field.key, position)
    return index

