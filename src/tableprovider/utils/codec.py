"""Best-effort text encoding for search values.

Mirrors ``encodeURIComponent`` / ``decodeURIComponent`` semantics, but never
raises: text that cannot be converted is echoed back unchanged.
"""

from typing import Any, Optional
from urllib.parse import quote, unquote

from tableprovider.utils.logging import get_logger

logger = get_logger(__name__)

# Characters left untouched by encodeURIComponent besides alphanumerics and "_.-~"
_SAFE_CHARS = "!*'()"


def encode(text: Any) -> Optional[str]:
    """
    Percent-encode text for use as a search value.

    Args:
        text: Value to encode. Non-strings are converted with str().

    Returns:
        Encoded text, the input unchanged if it is not encodable, or None for None.
    """
    if text is None:
        return None
    if not isinstance(text, str):
        text = str(text)
    try:
        return quote(text, safe=_SAFE_CHARS, encoding="utf-8", errors="strict")
    except UnicodeEncodeError:
        logger.debug("encode: returning malformed text unchanged")
        return text


def decode(text: Any) -> Optional[str]:
    """Reverse encode(); None and undecodable text are returned as given."""
    if text is None:
        return None
    if not isinstance(text, str):
        text = str(text)
    try:
        return unquote(text, encoding="utf-8", errors="strict")
    except (UnicodeDecodeError, UnicodeEncodeError):
        logger.debug("decode: returning malformed text unchanged")
        return text
