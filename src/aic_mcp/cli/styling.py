"""CLI output styling helpers.

- Cyan bold for section headers
- Green for success (checkmark), red for errors (cross)
- Yellow for warnings, dim for empty states
"""

from __future__ import annotations

__all__ = [
    "style_dim",
    "style_error",
    "style_header",
    "style_success",
    "style_warning",
]

import click


def style_header(title: str) -> str:
    """Section header, e.g. "--- Authentication ---"."""
    return click.style(f"--- {title} ---", fg="cyan", bold=True)


def style_success(message: str) -> str:
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    return click.style(f"✗ {message}", fg="red")


def style_dim(message: str) -> str:
    return click.style(message, dim=True)


def style_warning(message: str) -> str:
    return click.style(f"Warning: {message}", fg="yellow", bold=True)
