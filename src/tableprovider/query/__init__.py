"""Query translation: request + schema -> canonical wire query."""

from tableprovider.query.models import (
    UNBOUNDED,
    ColumnQuery,
    FilterPolicy,
    OrderEntry,
    ProviderDefaults,
    Query,
    ResolvedSource,
    SearchPattern,
    SearchValue,
    TableRequest,
)
from tableprovider.query.translator import build, normalize_search_value, resolve_filter_policy, to_wire_params

__all__ = [
    "UNBOUNDED",
    "ColumnQuery",
    "FilterPolicy",
    "OrderEntry",
    "ProviderDefaults",
    "Query",
    "ResolvedSource",
    "SearchPattern",
    "SearchValue",
    "TableRequest",
    "build",
    "normalize_search_value",
    "resolve_filter_policy",
    "to_wire_params",
]
