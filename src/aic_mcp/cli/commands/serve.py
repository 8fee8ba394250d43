"""Serve command: run the MCP server over stdio."""

from __future__ import annotations

__all__ = ["serve"]

import click

from aic_mcp.config import AttendedMode, load_config_from_env, resolve_mode
from aic_mcp.exceptions import ConfigurationError
from aic_mcp.security.keyring_utils import is_keyring_available
from aic_mcp.server import create_server
from aic_mcp.telemetry.system.system_logger import get_system_logger


@click.command()
def serve() -> None:
    """Run the MCP server (stdio transport).

    Reads AIC_BASE_URL and the optional AIC_MCP_* variables from the
    environment. Logs go to stderr; stdout carries the MCP protocol.
    """
    try:
        config = load_config_from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    if isinstance(resolve_mode(config), AttendedMode) and not is_keyring_available():
        get_system_logger().warning(
            {
                "event": "keyring_unavailable",
                "message": "OS keychain is not available; authentication will succeed but tokens cannot be saved",
            }
        )

    create_server(config).run()
