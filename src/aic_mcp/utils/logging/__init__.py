"""Logging utilities and helpers.

- iso_formatter: ISO 8601 timestamp formatting for JSONL logs
- logging_helpers: Sanitization and truncation utilities

Import directly from submodules to avoid circular imports:
    from aic_mcp.utils.logging.iso_formatter import ISO8601Formatter
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
