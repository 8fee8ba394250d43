"""Tenant tools exposed over MCP.

Each module declares the SCOPES its tools need and a register() function.
ALL_SCOPES is the union; the primary token is requested with all of them and
each call narrows it to the module's scopes through token exchange.
"""

from __future__ import annotations

__all__ = [
    "ALL_SCOPES",
    "TOOL_MODULES",
    "register_tools",
]

from typing import TYPE_CHECKING

from aic_mcp.tools import esv, journeys, managed_objects, monitoring

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from aic_mcp.tools.api import AICApiClient

TOOL_MODULES = (monitoring, managed_objects, esv, journeys)

ALL_SCOPES: tuple[str, ...] = tuple(dict.fromkeys(scope for module in TOOL_MODULES for scope in module.SCOPES))


def register_tools(mcp: "FastMCP", api: "AICApiClient") -> None:
    """Register every tool module on the server."""
    for module in TOOL_MODULES:
        module.register(mcp, api)
