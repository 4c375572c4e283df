"""CLI entrypoint for tableprovider."""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from tableprovider.config.loader import load_provider_config
from tableprovider.query.models import ProviderDefaults, TableRequest
from tableprovider.query.translator import build
from tableprovider.retrieval.provider import ItemsProvider
from tableprovider.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def _request_from_args(args: argparse.Namespace) -> TableRequest:
    return TableRequest(
        api_url=getattr(args, "api_url", None),
        current_page=args.page,
        per_page=args.per_page,
        filter=args.filter,
        sort_by=args.sort_by,
        sort_desc=args.sort_desc,
    )


def cmd_query(args: argparse.Namespace) -> None:
    """Print the wire query a request would produce."""
    config = load_provider_config(Path(args.config) if args.config else None)
    defaults = ProviderDefaults(
        sort_fields=config.sort_fields,
        search_fields=config.search_fields,
        filter_ignored_fields=config.filter_ignored_fields,
        filter_included_fields=config.filter_included_fields,
    )
    query = build(config.fields, _request_from_args(args), defaults)
    print(json.dumps(query.to_wire(), indent=2))


def cmd_fetch(args: argparse.Namespace) -> None:
    """Fetch one page of rows from the configured endpoint."""
    config = load_provider_config(Path(args.config) if args.config else None)
    provider = ItemsProvider.from_config(config)

    errors: List[Any] = []
    provider.on_response_error = errors.append

    try:
        rows = asyncio.run(provider.items(_request_from_args(args)))
    finally:
        close = getattr(provider.transport, "close", None)
        if close is not None:
            close()
    if errors:
        print(f"Error: {errors[0]}")
        raise SystemExit(1)

    output: Dict[str, Any] = {
        "provider": provider.get_name(),
        "total_rows": provider.total_rows,
        "rows": rows,
    }
    print(json.dumps(output, indent=2, default=str))


def _add_request_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        help="Path to provider YAML (default: config/provider.yaml)",
    )
    parser.add_argument("--page", type=int, default=1, help="1-based page number (default: 1)")
    parser.add_argument("--per-page", type=int, default=10, help="Rows per page (default: 10)")
    parser.add_argument("--filter", type=str, help="Global filter text")
    parser.add_argument("--sort-by", type=str, help="Fallback sort key when no sort_fields are configured")
    parser.add_argument(
        "--sort-desc",
        action="store_true",
        help="Sort the fallback key descending",
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="tableprovider",
        description="Translate table requests into DataTables queries and fetch rows",
    )
    parser.add_argument("--log-level", type=str, default=None, help="Log level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # query command
    query_parser = subparsers.add_parser("query", help="Print the wire query for a request")
    _add_request_arguments(query_parser)
    query_parser.set_defaults(func=cmd_query)

    # fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Fetch rows from the configured endpoint")
    _add_request_arguments(fetch_parser)
    fetch_parser.add_argument("--api-url", type=str, help="Override the configured api_url")
    fetch_parser.set_defaults(func=cmd_fetch)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if not args.command:
        parser.print_help()
        return

    try:
        args.func(args)
    except FileNotFoundError as e:
        logger.error(f"Provider config not found: {e}")
        print("Error: Provider config file not found. Create config/provider.yaml")
        raise SystemExit(2)
    except Exception as e:
        logger.error(f"Error running command '{args.command}': {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
