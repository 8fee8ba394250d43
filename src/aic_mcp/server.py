"""FastMCP server assembly.

Wires the AuthService and the tenant API client into the tool modules and
owns their lifecycle: both are closed when the server shuts down, which also
aborts any login flow still waiting for the user.
"""

from __future__ import annotations

__all__ = ["create_server"]

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastmcp import FastMCP

from aic_mcp.auth.elicitation import FastMCPElicitationChannel
from aic_mcp.auth.service import AuthService, init_auth_service
from aic_mcp.config import AICConfig
from aic_mcp.constants import SERVER_NAME
from aic_mcp.telemetry.system.system_logger import configure_system_logger_file, get_system_logger
from aic_mcp.tools import ALL_SCOPES, register_tools
from aic_mcp.tools.api import AICApiClient


def create_server(config: AICConfig, auth_service: AuthService | None = None) -> FastMCP:
    """Build the MCP server for a tenant.

    Args:
        config: Loaded configuration.
        auth_service: Pre-built service (for testing); created from config if None.

    Returns:
        FastMCP server with every tool registered.
    """
    system_logger = get_system_logger()
    if config.log_file:
        configure_system_logger_file(Path(config.log_file).expanduser())

    if auth_service is None:
        auth_service = init_auth_service(ALL_SCOPES, config, elicitation=FastMCPElicitationChannel())
    api = AICApiClient(config, auth_service)

    @asynccontextmanager
    async def server_lifespan(app: FastMCP) -> AsyncIterator[None]:
        """Close HTTP clients and abort pending logins on shutdown."""
        # Note: app parameter required by FastMCP's lifespan signature
        system_logger.info(
            {
                "event": "server_started",
                "message": f"{SERVER_NAME} serving tenant {config.tenant_host}",
                "tenant_host": config.tenant_host,
            }
        )
        try:
            yield
        finally:
            await api.aclose()
            await auth_service.aclose()
            system_logger.info({"event": "server_stopped", "message": f"{SERVER_NAME} stopped"})

    mcp = FastMCP(SERVER_NAME, lifespan=server_lifespan)
    register_tools(mcp, api)
    return mcp
