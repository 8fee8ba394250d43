"""Authentication commands for aic-mcp CLI.

Commands:
    auth status   - Show the stored token and storage backend
    auth logout   - Erase the stored token

Login happens on demand: the first tool call that needs a token starts the
browser (or device) flow. Logout only removes the local record; nothing is
revoked at the tenant.
"""

from __future__ import annotations

__all__ = ["auth"]

import json as json_module
from datetime import datetime, timezone
from typing import Any

import click

from aic_mcp.auth.token_storage import get_token_storage_info
from aic_mcp.config import load_config_from_env, resolve_mode
from aic_mcp.exceptions import ConfigurationError, TokenStorageError

from ..styling import style_dim, style_error, style_header, style_success, style_warning


def _resolve_or_exit():  # type: ignore[no-untyped-def]
    try:
        config = load_config_from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    return config, resolve_mode(config)


@click.group()
def auth() -> None:
    """Stored token commands."""
    pass


@auth.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(as_json: bool) -> None:
    """Show authentication status.

    Displays whether a token is stored, its expiry and tenant, and the
    storage backend in use.
    """
    config, mode = _resolve_or_exit()

    result: dict[str, Any] = {
        "tenant_host": config.tenant_host,
        "mode": "containerized" if config.containerized else "attended",
        "storage": get_token_storage_info(mode),
        "status": "not_authenticated",
    }

    try:
        record = mode.storage.load()
    except TokenStorageError as e:
        result["status"] = "token_corrupted"
        result["error"] = str(e)
        record = None

    if record is not None:
        result["expires_at"] = datetime.fromtimestamp(record.expires_at / 1000, tz=timezone.utc).isoformat()
        result["token_tenant_host"] = record.tenant_host
        if not record.is_for_tenant(config.tenant_host):
            result["status"] = "tenant_mismatch"
        elif record.is_expired:
            result["status"] = "expired"
        else:
            result["status"] = "authenticated"
            result["expires_in_seconds"] = int(record.seconds_until_expiry)

    if as_json:
        click.echo(json_module.dumps(result, indent=2))
        return

    _print_status(result)


def _print_status(result: dict[str, Any]) -> None:
    click.echo(style_header("Authentication"))
    click.echo(f"  Tenant:  {result['tenant_host']}")
    click.echo(f"  Mode:    {result['mode']}")
    storage = result["storage"]
    location = storage.get("location") or f"{storage.get('service')} / {storage.get('account')}"
    click.echo(f"  Storage: {storage['backend']} ({location})")
    if storage.get("available") == "no":
        click.echo(style_warning("OS keychain is not available on this host"))
    click.echo()

    state = result["status"]
    if state == "authenticated":
        minutes = result["expires_in_seconds"] // 60
        click.echo(style_success(f"Authenticated (expires {result['expires_at']}, in {minutes} min)"))
    elif state == "expired":
        click.echo(style_warning(f"Stored token expired at {result['expires_at']}"))
        click.echo("  A new login starts on the next tool call.")
    elif state == "tenant_mismatch":
        click.echo(style_warning(f"Stored token belongs to {result['token_tenant_host']}"))
        click.echo("  A new login starts on the next tool call.")
    elif state == "token_corrupted":
        click.echo(style_error(f"Stored token could not be read: {result['error']}"))
        click.echo("  Run 'aic-mcp auth logout' to clear it.")
    else:
        click.echo(style_dim("No stored token. A login starts on the first tool call."))


@auth.command()
def logout() -> None:
    """Erase the stored token.

    The next tool call will start a new login. The token is not revoked at
    the tenant; it stays valid there until it expires.
    """
    _config, mode = _resolve_or_exit()
    storage = mode.storage

    if not storage.exists():
        click.echo(style_dim("No stored credentials found."))
        return

    try:
        storage.erase()
    except TokenStorageError as e:
        raise click.ClickException(f"Failed to clear credentials: {e}")
    click.echo(style_success("Local credentials cleared."))
