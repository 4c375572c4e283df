"""Provider configuration loading from YAML."""

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from tableprovider.retrieval.transport import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from tableprovider.schema.fields import FieldSchema, normalize_fields

DEFAULT_PROVIDER_CONFIG_PATH = Path("config/provider.yaml")

VALID_DIRECTIONS = ("asc", "desc")
TRANSPORT_BACKENDS = ("requests", "httpx")


class TransportSettings(BaseModel):
    backend: Literal["requests", "httpx"] = "requests"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    user_agent: str = DEFAULT_USER_AGENT


class ProviderConfig(BaseModel):
    """Construction-time configuration for an ItemsProvider."""

    name: str = "ItemsProvider"
    api_url: Optional[str] = None
    fields: FieldSchema = ()
    sort_fields: Optional[Dict[str, str]] = None
    search_fields: Optional[Dict[str, Any]] = None
    filter_ignored_fields: List[str] = Field(default_factory=list)
    filter_included_fields: List[str] = Field(default_factory=list)
    transport: TransportSettings = Field(default_factory=TransportSettings)


def _validate_key_list(config: Dict[str, Any], name: str) -> List[str]:
    value = config.get(name) or []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"Provider config '{name}' must be a list of field keys")
    return value


def parse_provider_config(config: Dict[str, Any]) -> ProviderConfig:
    """
    Validate a provider config mapping.

    Args:
        config: Parsed YAML (or equivalent dict)

    Returns:
        ProviderConfig

    Raises:
        ValueError: If the structure is invalid
    """
    if not isinstance(config, dict):
        raise ValueError("Provider config must be a dictionary")

    fields = config.get("fields")
    if fields is None:
        raise ValueError("Provider config must have 'fields' field")
    if not isinstance(fields, (list, dict)):
        raise ValueError("Provider config 'fields' must be a list or a mapping")

    sort_fields = config.get("sort_fields")
    if sort_fields is not None:
        if not isinstance(sort_fields, dict):
            raise ValueError("Provider config 'sort_fields' must be a mapping")
        for key, direction in sort_fields.items():
            if str(direction).lower() not in VALID_DIRECTIONS:
                raise ValueError(f"Sort direction for '{key}' must be asc or desc, got {direction!r}")

    search_fields = config.get("search_fields")
    if search_fields is not None and not isinstance(search_fields, dict):
        raise ValueError("Provider config 'search_fields' must be a mapping")

    transport = config.get("transport") or {}
    if not isinstance(transport, dict):
        raise ValueError("Provider config 'transport' must be a mapping")
    if transport.get("backend", "requests") not in TRANSPORT_BACKENDS:
        raise ValueError(f"Transport backend must be one of {TRANSPORT_BACKENDS}, got {transport.get('backend')!r}")

    return ProviderConfig(
        name=config.get("name") or "ItemsProvider",
        api_url=config.get("api_url"),
        fields=normalize_fields(fields),
        sort_fields={key: str(direction).lower() for key, direction in sort_fields.items()} if sort_fields else sort_fields,
        search_fields=search_fields,
        filter_ignored_fields=_validate_key_list(config, "filter_ignored_fields"),
        filter_included_fields=_validate_key_list(config, "filter_included_fields"),
        transport=TransportSettings(**transport),
    )


def load_provider_config(path: Path | None = None) -> ProviderConfig:
    """
    Load provider configuration from YAML file.

    Args:
        path: Optional path to the YAML file. Defaults to config/provider.yaml

    Returns:
        ProviderConfig

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config structure is invalid
    """
    cfg_path = path or DEFAULT_PROVIDER_CONFIG_PATH
    if not cfg_path.exists():
        raise FileNotFoundError(f"Provider config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f)
    return parse_provider_config(config)
