"""Logging helpers shared across the package."""

import logging
import os
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root ``tableprovider`` logger once.

    Args:
        level: Log level name. Falls back to TABLEPROVIDER_LOG_LEVEL, then INFO.
    """
    global _configured
    if _configured:
        return
    level_name = (level or os.environ.get("TABLEPROVIDER_LOG_LEVEL") or "INFO").upper()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root = logging.getLogger("tableprovider")
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger (handlers are attached by configure_logging)."""
    return logging.getLogger(name)
