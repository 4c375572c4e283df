"""Query translation and row retrieval for DataTables-style server-side tables."""

from tableprovider.query.models import (
    ProviderDefaults,
    Query,
    SearchPattern,
    SearchValue,
    TableRequest,
)
from tableprovider.query.translator import build, to_wire_params
from tableprovider.retrieval.provider import (
    DataTablesResponse,
    ItemsProvider,
    ProviderHooks,
    ProviderState,
    QueryConfig,
)
from tableprovider.retrieval.transport import (
    HttpxTransport,
    RequestCancelled,
    RequestsTransport,
    Transport,
    TransportError,
    TransportResponse,
)
from tableprovider.schema.fields import FieldDefinition, normalize_fields
from tableprovider.utils.codec import decode, encode

__version__ = "0.1.0"

__all__ = [
    "DataTablesResponse",
    "FieldDefinition",
    "HttpxTransport",
    "ItemsProvider",
    "ProviderDefaults",
    "ProviderHooks",
    "ProviderState",
    "Query",
    "QueryConfig",
    "RequestCancelled",
    "RequestsTransport",
    "SearchPattern",
    "SearchValue",
    "TableRequest",
    "Transport",
    "TransportError",
    "TransportResponse",
    "build",
    "decode",
    "encode",
    "normalize_fields",
    "to_wire_params",
]
