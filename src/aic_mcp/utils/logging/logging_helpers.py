"""Logging helper utilities.

Sanitization and truncation for values that end up in structured logs,
mostly response bodies from OAuth endpoints and the tenant API.
"""

__all__ = [
    "sanitize_for_logging",
    "truncate_for_logging",
]

from aic_mcp.constants import LOG_BODY_MAX_CHARS


def sanitize_for_logging(value: str) -> str:
    """Sanitize string values for safe JSONL logging.

    Prevents log injection by escaping newlines and control characters.

    Args:
        value: String value to sanitize (e.g., response body, header value).

    Returns:
        str: Sanitized string safe for JSONL logging.

    Example:
        >>> sanitize_for_logging("line1\\nline2")
        'line1\\\\nline2'
    """
    if not isinstance(value, str):
        return str(value)

    sanitized = value.replace("\n", "\\n").replace("\r", "\\r")
    sanitized = sanitized.replace("\t", "\\t")

    return sanitized


def truncate_for_logging(value: str | None, max_chars: int = LOG_BODY_MAX_CHARS) -> str | None:
    """Sanitize and truncate a response body for logging.

    Args:
        value: Body text (None passes through).
        max_chars: Maximum characters kept before the truncation marker.

    Returns:
        Sanitized text, suffixed with "...[truncated N chars]" when cut.
    """
    if value is None:
        return None
    sanitized = sanitize_for_logging(value)
    if len(sanitized) <= max_chars:
        return sanitized
    dropped = len(sanitized) - max_chars
    return f"{sanitized[:max_chars]}...[truncated {dropped} chars]"
