"""Main CLI entry point for aic-mcp.

Defines the CLI group and registers all subcommands.

Commands:
    serve  - Run the MCP server over stdio
    auth   - Stored token commands (status, logout)

Configuration comes from the environment (AIC_BASE_URL is required).
"""

from __future__ import annotations

__all__ = ["cli"]

import sys

import click

from aic_mcp import __version__

from .commands.auth import auth
from .commands.serve import serve


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """aic-mcp: MCP server for PingOne Advanced Identity Cloud."""
    if version:
        click.echo(f"aic-mcp {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(auth)
cli.add_command(serve)


def main() -> None:
    """CLI entry point."""
    cli()
