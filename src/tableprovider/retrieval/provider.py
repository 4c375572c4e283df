"""Items provider: serves table rows from local items or a DataTables endpoint.

Failures never escape ``items`` / ``execute_query``: they are logged, reported
through the ``on_response_error`` hook, and the call resolves to ``[]``.

Overlapping ``items`` calls on one provider share ``state``; the last call to
finish wins ``state.query`` and ``total_rows``. Each call still returns its
own rows.
"""

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tableprovider.query.models import UNBOUNDED, ColumnQuery, ProviderDefaults, Query, TableRequest
from tableprovider.query.translator import build, to_wire_params
from tableprovider.retrieval.transport import (
    HttpxTransport,
    RequestsTransport,
    Transport,
    TransportError,
    TransportResponse,
)
from tableprovider.schema.fields import FieldDefinition, normalize_fields
from tableprovider.utils.logging import get_logger

if TYPE_CHECKING:
    from tableprovider.config.loader import ProviderConfig

logger = get_logger(__name__)

DEFAULT_NAME = "ItemsProvider"

Hook = Optional[Callable[..., Any]]


class DataTablesResponse(BaseModel):
    """Server-side processing response body."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    draw: Optional[int] = None
    records_filtered: int = Field(default=0, alias="recordsFiltered")
    records_total: int = Field(default=0, alias="recordsTotal")
    data: Optional[List[Any]] = None
    error: Optional[str] = None


class QueryConfig(BaseModel):
    """Where to fetch from and what to send."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    api_url: Optional[str] = None
    query: Optional[Query] = None
    headers: Optional[Dict[str, str]] = None


@dataclass
class ProviderState:
    """Mutable per-provider state: local items, row count, page size, last query."""

    local_items: Optional[List[Any]] = None
    total_rows: int = 0
    per_page: int = 0  # UNBOUNDED once local items are set
    query: Optional[Query] = None


@dataclass
class ProviderHooks:
    """Caller-settable callbacks, invoked synchronously."""

    on_before_query: Hook = None  # (request)
    on_field_translate: Hook = None  # (field, column)
    on_response_complete: Hook = None  # (response)
    on_response_error: Hook = None  # (error)


def _unwrap_body(result: Any) -> Any:
    if isinstance(result, TransportResponse):
        return result.data
    if isinstance(result, Mapping):
        wrapped = result.get("data")
        # Envelope of the form {"data": {...body...}}
        if isinstance(wrapped, Mapping) and "recordsTotal" not in result:
            return wrapped
        return result
    return getattr(result, "data", result)


class ItemsProvider:
    """Supplies rows to a paginated, sortable, filterable table."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        fields: Any = None,
        sort_fields: Optional[Dict[str, Any]] = None,
        search_fields: Optional[Dict[str, Any]] = None,
        filter_ignored_fields: Optional[List[str]] = None,
        filter_included_fields: Optional[List[str]] = None,
        *,
        api_url: Optional[str] = None,
        name: str = DEFAULT_NAME,
    ):
        """
        Initialize provider.

        Args:
            transport: GET collaborator used for remote retrieval
            fields: Column definitions in wire order
            sort_fields: Default sort directive (key -> asc/desc)
            search_fields: Default per-field search directive
            filter_ignored_fields: Keys the global filter skips
            filter_included_fields: Keys the global filter is limited to (wins over ignored)
            api_url: Endpoint used when a request carries none
            name: Identifier returned by get_name()
        """
        self.transport = transport
        self.fields = normalize_fields(fields)
        self.defaults = ProviderDefaults(
            sort_fields=sort_fields,
            search_fields=search_fields,
            filter_ignored_fields=list(filter_ignored_fields or []),
            filter_included_fields=list(filter_included_fields or []),
        )
        self.api_url = api_url
        self.name = name
        self.state = ProviderState()
        self.hooks = ProviderHooks()

    @classmethod
    def from_config(cls, config: "ProviderConfig", transport: Optional[Transport] = None) -> "ItemsProvider":
        """Build a provider from loaded configuration; the transport follows transport.backend."""
        if transport is None:
            transport_cls = HttpxTransport if config.transport.backend == "httpx" else RequestsTransport
            transport = transport_cls(
                timeout=config.transport.timeout_seconds,
                user_agent=config.transport.user_agent,
            )
        return cls(
            transport,
            config.fields,
            sort_fields=config.sort_fields,
            search_fields=config.search_fields,
            filter_ignored_fields=config.filter_ignored_fields,
            filter_included_fields=config.filter_included_fields,
            api_url=config.api_url,
            name=config.name,
        )

    # Hooks

    @property
    def on_before_query(self) -> Hook:
        return self.hooks.on_before_query

    @on_before_query.setter
    def on_before_query(self, hook: Hook) -> None:
        self.hooks.on_before_query = hook

    @property
    def on_field_translate(self) -> Hook:
        return self.hooks.on_field_translate

    @on_field_translate.setter
    def on_field_translate(self, hook: Hook) -> None:
        self.hooks.on_field_translate = hook

    @property
    def on_response_complete(self) -> Hook:
        return self.hooks.on_response_complete

    @on_response_complete.setter
    def on_response_complete(self, hook: Hook) -> None:
        self.hooks.on_response_complete = hook

    @property
    def on_response_error(self) -> Hook:
        return self.hooks.on_response_error

    @on_response_error.setter
    def on_response_error(self, hook: Hook) -> None:
        self.hooks.on_response_error = hook

    def _fire(self, hook_name: str, *args: Any) -> None:
        hook = getattr(self.hooks, hook_name)
        if hook is None:
            return
        try:
            hook(*args)
        except Exception as e:
            logger.error(f"{self.name}: {hook_name} hook failed: {e}", exc_info=True)

    def _field_translated(self, field: FieldDefinition, column: ColumnQuery) -> None:
        self._fire("on_field_translate", field, column)

    # State

    @property
    def total_rows(self) -> int:
        return self.state.total_rows

    @property
    def is_local(self) -> bool:
        return self.state.local_items is not None

    def get_name(self) -> str:
        return self.name

    def set_local_items(self, items: Optional[List[Any]]) -> None:
        """Serve ``items`` instead of querying the endpoint (None clears them)."""
        self.state.local_items = items
        self.state.total_rows = len(items) if items is not None else 0
        self.state.per_page = UNBOUNDED

    def get_local_items(self, on_each: Optional[Callable[[Any], Any]] = None) -> Optional[List[Any]]:
        """
        Return the stored local items as given.

        Args:
            on_each: Inspection callback, called once with the stored items

        Returns:
            The local items, or None when none are set
        """
        items = self.state.local_items
        if on_each is not None:
            try:
                on_each(items)
            except Exception as e:
                logger.error(f"{self.name}: local items callback failed: {e}", exc_info=True)
        return items

    # Retrieval

    async def execute_query(
        self,
        config: Union[QueryConfig, TableRequest, Mapping[str, Any], None] = None,
        cancel_token: Any = None,
    ) -> List[Any]:
        """
        Fetch rows for a query.

        Local items, when set, are returned immediately and the transport is not
        touched. Otherwise one GET is sent to ``api_url`` with the query (the
        embedded one, else ``state.query``) as DataTables parameters.

        Args:
            config: QueryConfig, or a request / mapping carrying apiUrl
            cancel_token: Passed to the transport as is

        Returns:
            Rows from the response, or [] if the fetch failed
        """
        if self.state.local_items is not None:
            logger.debug(f"{self.name}: serving {len(self.state.local_items)} local items")
            return self.state.local_items

        url = None
        try:
            query_config = self._coerce_query_config(config)
            url = query_config.api_url or self.api_url
            query = query_config.query or self.state.query
            if self.transport is None:
                raise TransportError("No transport configured")
            if not url:
                raise TransportError("No api_url configured")

            logger.info(f"{self.name}: fetching rows from {url}")
            params = to_wire_params(query) if query is not None else {}
            result = self.transport.get(
                url,
                params=params,
                headers=query_config.headers,
                cancel_token=cancel_token,
            )
            if inspect.isawaitable(result):
                result = await result
            response = DataTablesResponse.model_validate(_unwrap_body(result))
        except Exception as e:
            logger.error(f"{self.name}: failed to fetch rows from {url}: {e}")
            self._fire("on_response_error", e)
            return []

        if response.error:
            logger.warning(f"{self.name}: endpoint reported error: {response.error}")
        self.state.total_rows = response.records_total
        if query is not None:
            self.state.per_page = query.length
        self._fire("on_response_complete", response)

        rows = response.data or []
        logger.info(f"{self.name}: fetched {len(rows)} rows ({response.records_total} total)")
        return rows

    async def items(
        self,
        request: Union[TableRequest, Mapping[str, Any], None] = None,
        cancel_token: Any = None,
    ) -> List[Any]:
        """
        Translate a table request and retrieve its rows.

        Args:
            request: Pagination, filter and sort parameters for this call
            cancel_token: Passed to the transport as is

        Returns:
            Rows for the request; [] on any failure
        """
        self._fire("on_before_query", request)
        try:
            table_request = request if isinstance(request, TableRequest) else TableRequest.model_validate(dict(request or {}))
            query = build(
                self.fields,
                table_request,
                self.defaults,
                local_mode=self.is_local,
                on_field_translate=self._field_translated,
            )
        except (TypeError, ValueError) as e:
            logger.error(f"{self.name}: invalid request: {e}")
            self._fire("on_response_error", e)
            return []

        self.state.query = query
        return await self.execute_query(
            QueryConfig(api_url=table_request.api_url or self.api_url, query=query),
            cancel_token=cancel_token,
        )

    @staticmethod
    def _coerce_query_config(config: Union[QueryConfig, TableRequest, Mapping[str, Any], None]) -> QueryConfig:
        if isinstance(config, QueryConfig):
            return config
        if isinstance(config, TableRequest):
            return QueryConfig(api_url=config.api_url)
        return QueryConfig.model_validate(dict(config or {}))
