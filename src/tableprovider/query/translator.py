"""Translate a field schema plus request parameters into a canonical Query.

Precedence rules:

1. Per-call ``sort_fields`` / ``search_fields`` replace the provider defaults
   of the same kind wholesale. They are never merged key by key.
2. ``sort_by`` is only consulted when no sort directive exists at all.
3. A non-empty ``filter_included_fields`` whitelist beats the blacklist.
4. Per-field search never targets a non-searchable field, even though a
   whitelisted global filter may.

Keys that do not name a schema field are ignored, never rejected.
"""

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

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
from tableprovider.schema.fields import FieldDefinition, FieldSchema, field_index, normalize_fields
from tableprovider.utils.codec import encode
from tableprovider.utils.logging import get_logger

logger = get_logger(__name__)

FieldTranslateHook = Callable[[FieldDefinition, ColumnQuery], Any]

_REGEX_FLAG_KEYS = ("regex", "useRegex", "use_regex")


def resolve_directive(
    override: Optional[Dict[str, Any]],
    default: Optional[Dict[str, Any]],
) -> Tuple[ResolvedSource, Optional[Dict[str, Any]]]:
    """Pick exactly one directive source for this pass (override, default, or none)."""
    if override is not None:
        return ResolvedSource.CALL_OVERRIDE, override
    if default is not None:
        return ResolvedSource.PROVIDER_DEFAULT, default
    return ResolvedSource.NONE, None


def resolve_filter_policy(defaults: ProviderDefaults) -> FilterPolicy:
    """
    Resolve global filter eligibility from the provider defaults.

    Args:
        defaults: Provider-level defaults carrying the include/ignore lists

    Returns:
        Whitelist policy if included fields are set, else blacklist if ignored
        fields are set, else open
    """
    if defaults.filter_included_fields:
        return FilterPolicy(mode="whitelist", field_keys=frozenset(defaults.filter_included_fields))
    if defaults.filter_ignored_fields:
        return FilterPolicy(mode="blacklist", field_keys=frozenset(defaults.filter_ignored_fields))
    return FilterPolicy(mode="open")


def _pattern_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, re.Pattern):
        value = SearchPattern.from_regex(value)
    if isinstance(value, SearchPattern):
        return value.source
    return str(value)


def _is_pattern(value: Any) -> bool:
    return isinstance(value, (re.Pattern, SearchPattern))


def normalize_search_value(raw: Any) -> Optional[SearchValue]:
    """
    Normalize one per-field search input.

    Args:
        raw: Literal, compiled pattern, SearchPattern, SearchValue, or a mapping
            with ``value`` and a ``regex`` / ``useRegex`` flag

    Returns:
        SearchValue, or None when there is nothing to search for
    """
    if raw is None:
        return None
    if isinstance(raw, SearchValue):
        return raw
    if _is_pattern(raw):
        return SearchValue(value=_pattern_text(raw), regex=True)
    if isinstance(raw, Mapping):
        value = raw.get("value")
        regex = _is_pattern(value)
        for flag_key in _REGEX_FLAG_KEYS:
            if flag_key in raw:
                # The caller's flag wins over the value's type
                regex = bool(raw[flag_key])
                break
        return SearchValue(value=_pattern_text(value), regex=regex)
    return SearchValue(value=str(raw), regex=False)


def _normalize_dir(direction: Any) -> Optional[str]:
    if not isinstance(direction, str):
        return None
    direction = direction.strip().lower()
    if direction in ("asc", "desc"):
        return direction
    return None


def _paginate(request: TableRequest, local_mode: bool) -> Tuple[int, int]:
    if local_mode or request.per_page is None or request.per_page < 0:
        return 0, UNBOUNDED
    page = max(request.current_page, 1)
    return (page - 1) * request.per_page, request.per_page


def _resolve_order(
    schema: FieldSchema,
    request: TableRequest,
    defaults: ProviderDefaults,
) -> List[OrderEntry]:
    source, directive = resolve_directive(request.sort_fields, defaults.sort_fields)
    order: List[OrderEntry] = []
    if directive is not None:
        for position, field in enumerate(schema):
            if field.is_placeholder or not field.orderable or field.key not in directive:
                continue
            direction = _normalize_dir(directive[field.key])
            if direction is None:
                logger.debug(f"Ignoring sort direction {directive[field.key]!r} for '{field.key}'")
                continue
            order.append(OrderEntry(column=position, dir=direction))
        logger.debug(f"Sort resolved from {source.value}: {len(order)} column(s)")
        return order

    if request.sort_by:
        position = field_index(schema).get(request.sort_by)
        if position is not None and schema[position].orderable:
            order.append(OrderEntry(column=position, dir="desc" if request.sort_desc else "asc"))
        else:
            logger.debug(f"Ignoring sort_by '{request.sort_by}': no orderable field")
    return order


def _coerce_request(request: Union[TableRequest, Mapping[str, Any], None]) -> TableRequest:
    if isinstance(request, TableRequest):
        return request
    return TableRequest.model_validate(dict(request or {}))


def _coerce_defaults(defaults: Union[ProviderDefaults, Mapping[str, Any], None]) -> ProviderDefaults:
    if isinstance(defaults, ProviderDefaults):
        return defaults
    return ProviderDefaults.model_validate(dict(defaults or {}))


def build(
    schema: Any,
    request: Union[TableRequest, Mapping[str, Any], None],
    defaults: Union[ProviderDefaults, Mapping[str, Any], None] = None,
    *,
    local_mode: bool = False,
    on_field_translate: Optional[FieldTranslateHook] = None,
) -> Query:
    """
    Build the canonical Query for one request.

    Args:
        schema: Field definitions in column order (any shape normalize_fields accepts)
        request: Per-call parameters
        defaults: Provider-level sort/search defaults and filter lists
        local_mode: Provider serves local items; pagination becomes start=0, length=-1
        on_field_translate: Called once per field with (field, resolved column)

    Returns:
        Frozen Query with one column entry per schema field
    """
    fields = normalize_fields(schema)
    request = _coerce_request(request)
    defaults = _coerce_defaults(defaults)

    start, length = _paginate(request, local_mode)
    order = _resolve_order(fields, request, defaults)

    searches: List[Optional[SearchValue]] = [None] * len(fields)

    filter_text = _pattern_text(request.filter)
    encoded_filter = encode(filter_text) if filter_text else ""
    if filter_text:
        policy = resolve_filter_policy(defaults)
        for position, field in enumerate(fields):
            if policy.allows(field):
                searches[position] = SearchValue(value=encoded_filter, regex=False)

    source, directive = resolve_directive(request.search_fields, defaults.search_fields)
    if directive is not None:
        positions = field_index(fields)
        for key, raw in directive.items():
            position = positions.get(key)
            if position is None:
                logger.debug(f"Ignoring search on unknown field '{key}' ({source.value})")
                continue
            if not fields[position].searchable:
                logger.debug(f"Dropping search on non-searchable field '{key}' ({source.value})")
                continue
            value = normalize_search_value(raw)
            if value is not None:
                searches[position] = value

    columns = tuple(ColumnQuery(search=search) for search in searches)
    if on_field_translate is not None:
        for field, column in zip(fields, columns):
            on_field_translate(field, column)

    return Query(
        start=start,
        length=length,
        global_search=SearchValue(value=encoded_filter, regex=False),
        order=tuple(order),
        columns=columns,
    )


def _flatten(prefix: str, value: Any, out: Dict[str, str]) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            _flatten(f"{prefix}[{key}]" if prefix else str(key), item, out)
    elif isinstance(value, (list, tuple)):
        for position, item in enumerate(value):
            _flatten(f"{prefix}[{position}]", item, out)
    elif isinstance(value, bool):
        out[prefix] = "true" if value else "false"
    elif value is not None:
        out[prefix] = str(value)


def to_wire_params(query: Query) -> Dict[str, str]:
    """
    Flatten a Query into DataTables bracket-notation request parameters.

    Every column index is emitted; columns without a search carry an empty
    value, which DataTables reads as "no search".
    """
    wire = query.to_wire()
    wire["columns"] = [column or {"search": SearchValue().model_dump()} for column in wire["columns"]]
    params: Dict[str, str] = {}
    _flatten("", wire, params)
    return params
