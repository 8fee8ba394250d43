"""Command-line interface for aic-mcp.

Provides commands for running the MCP server and inspecting or clearing the
locally stored token.
"""

from .main import cli, main

__all__ = ["cli", "main"]
