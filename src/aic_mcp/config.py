"""Application configuration for aic-mcp.

Configuration comes from environment variables (the MCP client launches the
server with an env block, or the container image sets them). It is read once
at startup into an AICConfig and never re-evaluated.

Example usage:
    config = load_config_from_env()
    mode = resolve_mode(config)
"""

from __future__ import annotations

__all__ = [
    "AICConfig",
    "AttendedMode",
    "ContainerizedMode",
    "Mode",
    "load_config_from_env",
    "normalize_tenant_host",
    "resolve_mode",
]

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from aic_mcp.auth.token_storage import FileStorage, KeychainStorage
from aic_mcp.constants import CLIENT_ID, DEFAULT_REDIRECT_PORT, DEFAULT_TOKEN_FILE, EXCHANGE_CLIENT_ID
from aic_mcp.exceptions import ConfigurationError

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


def normalize_tenant_host(url: str) -> str:
    """Reduce a tenant URL to its bare hostname.

    Removes protocol, paths, query params, fragments and port.

    Args:
        url: Tenant URL as configured (may include protocol, path, etc.).

    Returns:
        Lowercased hostname only.

    Examples:
        >>> normalize_tenant_host("https://tenant.forgeblocks.com")
        'tenant.forgeblocks.com'
        >>> normalize_tenant_host("tenant.forgeblocks.com/admin")
        'tenant.forgeblocks.com'
        >>> normalize_tenant_host("tenant.forgeblocks.com:8080")
        'tenant.forgeblocks.com'
    """
    normalized = url.strip()
    normalized = re.sub(r"^https?://", "", normalized, flags=re.IGNORECASE)
    normalized = re.sub(r"[/?#].*$", "", normalized)
    normalized = re.sub(r":.*$", "", normalized)
    return normalized.lower()


class AICConfig(BaseModel):
    """Tenant and OAuth client configuration.

    Attributes:
        tenant_host: Hostname of the AIC tenant (normalized, no protocol).
        client_id: Public client used for interactive login.
        exchange_client_id: Client used for RFC 8693 token exchange.
        redirect_port: Loopback port for the PKCE redirect listener.
        containerized: Run in containerized mode (device flow + file storage).
        token_file: Token file path used in containerized mode.
        allow_cached_on_first_request: Trust a stored token before this
            process has authenticated once.
        pkce_timeout_seconds: Give up waiting for the browser redirect after
            this many seconds. None waits until aborted.
        require_origin_header: Reject redirects that carry neither Referer
            nor Origin.
        log_file: Optional JSONL file for WARNING+ system log records.
    """

    tenant_host: str = Field(min_length=1)
    client_id: str = Field(default=CLIENT_ID, min_length=1)
    exchange_client_id: str = Field(default=EXCHANGE_CLIENT_ID, min_length=1)
    redirect_port: int = Field(default=DEFAULT_REDIRECT_PORT, ge=0, le=65535)
    containerized: bool = False
    token_file: str = DEFAULT_TOKEN_FILE
    allow_cached_on_first_request: bool = False
    pkce_timeout_seconds: float | None = Field(default=None, gt=0)
    require_origin_header: bool = False
    log_file: str | None = None

    @field_validator("tenant_host")
    @classmethod
    def _normalize_host(cls, value: str) -> str:
        host = normalize_tenant_host(value)
        if not host:
            raise ValueError("tenant host is empty after normalization")
        return host

    @property
    def base_url(self) -> str:
        """HTTPS origin of the tenant."""
        return f"https://{self.tenant_host}"

    @property
    def authorize_url(self) -> str:
        return f"{self.base_url}/am/oauth2/authorize"

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/am/oauth2/access_token"

    @property
    def device_code_url(self) -> str:
        return f"{self.base_url}/am/oauth2/device/code"


# =============================================================================
# Process Mode
# =============================================================================


@dataclass(frozen=True)
class AttendedMode:
    """Desktop process with a user at a browser: PKCE flow, OS keychain."""

    storage: KeychainStorage


@dataclass(frozen=True)
class ContainerizedMode:
    """Headless/containerized process: device flow, plain token file."""

    storage: FileStorage


Mode = Union[AttendedMode, ContainerizedMode]


def resolve_mode(config: AICConfig) -> Mode:
    """Select the process mode once at startup.

    Args:
        config: Loaded configuration.

    Returns:
        ContainerizedMode when config.containerized, otherwise AttendedMode.
    """
    if config.containerized:
        return ContainerizedMode(storage=FileStorage(config.token_file))
    return AttendedMode(storage=KeychainStorage())


# =============================================================================
# Environment Loading
# =============================================================================


def _parse_bool(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be true or false, got {raw!r}")


def load_config_from_env(environ: Mapping[str, str] | None = None) -> AICConfig:
    """Build AICConfig from environment variables.

    Variables:
        AIC_BASE_URL (required): Tenant URL or hostname.
        DOCKER_CONTAINER: "true" selects containerized mode (set by the image).
        AIC_MCP_TOKEN_FILE: Token file for containerized mode.
        AIC_MCP_REDIRECT_PORT: Loopback port for the PKCE redirect.
        AIC_MCP_ALLOW_CACHED_ON_FIRST_REQUEST: Trust cached token on startup.
        AIC_MCP_PKCE_TIMEOUT_SECONDS: Browser redirect wait timeout.
        AIC_MCP_REQUIRE_ORIGIN_HEADER: Reject redirects without Referer/Origin.
        AIC_MCP_LOG_FILE: JSONL file for WARNING+ system log records.

    Args:
        environ: Mapping to read from (defaults to os.environ).

    Returns:
        Validated AICConfig.

    Raises:
        ConfigurationError: If AIC_BASE_URL is missing or any value is invalid.
    """
    env = os.environ if environ is None else environ

    base_url = env.get("AIC_BASE_URL", "").strip()
    if not base_url:
        raise ConfigurationError("AIC_BASE_URL environment variable is not set.")

    values: dict[str, object] = {
        "tenant_host": base_url,
        # Only the exact value "true" enables container mode (matches the image)
        "containerized": env.get("DOCKER_CONTAINER", "").strip().lower() == "true",
        "allow_cached_on_first_request": _parse_bool(env, "AIC_MCP_ALLOW_CACHED_ON_FIRST_REQUEST"),
        "require_origin_header": _parse_bool(env, "AIC_MCP_REQUIRE_ORIGIN_HEADER"),
    }
    if env.get("AIC_MCP_TOKEN_FILE"):
        values["token_file"] = env["AIC_MCP_TOKEN_FILE"]
    if env.get("AIC_MCP_REDIRECT_PORT"):
        values["redirect_port"] = env["AIC_MCP_REDIRECT_PORT"]
    if env.get("AIC_MCP_PKCE_TIMEOUT_SECONDS"):
        values["pkce_timeout_seconds"] = env["AIC_MCP_PKCE_TIMEOUT_SECONDS"]
    if env.get("AIC_MCP_LOG_FILE"):
        values["log_file"] = env["AIC_MCP_LOG_FILE"]

    try:
        return AICConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
