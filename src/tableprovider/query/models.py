"""Pydantic models for table requests and the canonical wire query."""

import re
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tableprovider.schema.fields import FieldDefinition

SortDir = Literal["asc", "desc"]

# Sentinel page size: serve the whole local collection, no remote pagination
UNBOUNDED = -1

_FLAG_LETTERS = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)


class SearchPattern(BaseModel):
    """Pattern-typed search value, carried as source text plus flag letters."""

    model_config = ConfigDict(frozen=True)

    source: str
    flags: str = ""

    @classmethod
    def from_regex(cls, pattern: "re.Pattern[str]") -> "SearchPattern":
        letters = "".join(letter for flag, letter in _FLAG_LETTERS if pattern.flags & flag)
        return cls(source=pattern.pattern, flags=letters)


class SearchValue(BaseModel):
    """Resolved search entry as sent on the wire."""

    model_config = ConfigDict(frozen=True)

    value: str = ""
    regex: bool = False


class OrderEntry(BaseModel):
    """One ordering instruction, referencing a column by schema index."""

    model_config = ConfigDict(frozen=True)

    column: int
    dir: SortDir = "asc"


class ColumnQuery(BaseModel):
    """Per-column part of the query; search is absent for unfiltered columns."""

    model_config = ConfigDict(frozen=True)

    search: Optional[SearchValue] = None


class Query(BaseModel):
    """Canonical, immutable query produced by one translation pass."""

    model_config = ConfigDict(frozen=True)

    start: int = 0
    length: int = UNBOUNDED
    global_search: SearchValue = Field(default_factory=SearchValue)
    order: Tuple[OrderEntry, ...] = ()
    columns: Tuple[ColumnQuery, ...] = ()

    def to_wire(self) -> Dict[str, Any]:
        """
        Render the DataTables server-side request shape.

        Returns:
            Dict with start, length, search, order and columns (one entry per field)
        """
        return {
            "start": self.start,
            "length": self.length,
            "search": self.global_search.model_dump(),
            "order": [entry.model_dump() for entry in self.order],
            "columns": [column.model_dump(exclude_none=True) for column in self.columns],
        }


class TableRequest(BaseModel):
    """Per-call parameters supplied by the table component.

    Both snake_case and camelCase names are accepted (``per_page`` / ``perPage``).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    api_url: Optional[str] = None
    current_page: int = 1
    per_page: Optional[int] = None
    filter: Any = None  # str or compiled pattern
    sort_by: Optional[str] = None
    sort_desc: bool = False
    sort_fields: Optional[Dict[str, Any]] = None
    search_fields: Optional[Dict[str, Any]] = None


class ProviderDefaults(BaseModel):
    """Provider-level directives a request may replace."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sort_fields: Optional[Dict[str, Any]] = None
    search_fields: Optional[Dict[str, Any]] = None
    filter_ignored_fields: List[str] = Field(default_factory=list)
    filter_included_fields: List[str] = Field(default_factory=list)


class ResolvedSource(str, Enum):
    """Where a sort/search directive came from for one translation pass."""

    CALL_OVERRIDE = "call-override"
    PROVIDER_DEFAULT = "provider-default"
    NONE = "none"


class FilterPolicy(BaseModel):
    """Global filter eligibility: whitelist, blacklist or open."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["whitelist", "blacklist", "open"] = "open"
    field_keys: FrozenSet[str] = frozenset()

    def allows(self, field: FieldDefinition) -> bool:
        """
        Decide whether the global filter applies to a field.

        Whitelist and open modes ignore the field's searchable flag; blacklist
        mode only covers searchable fields that are not listed.
        """
        if field.is_placeholder:
            return False
        if self.mode == "whitelist":
            return field.key in self.field_keys
        if self.mode == "blacklist":
            return field.searchable and field.key not in self.field_keys
        return True
