"""Authentication engine for the PingOne AIC tenant.

This package provides:
- Token storage (OS keychain in attended mode, JSON file in containers)
- PKCE authorization code flow with a loopback redirect listener
- Device authorization flow with MCP elicitation
- RFC 8693 token exchange for per-tool scopes

The coordinator that ties these together is aic_mcp.auth.service.AuthService
(imported from its module; it depends on aic_mcp.config).
"""

from aic_mcp.auth.device_flow import DeviceCodeResponse, DeviceFlow
from aic_mcp.auth.elicitation import (
    ElicitationChannel,
    ElicitationOutcome,
    FastMCPElicitationChannel,
)
from aic_mcp.auth.pkce import PkcePair, generate_pkce_pair, generate_state
from aic_mcp.auth.pkce_flow import PkceFlow
from aic_mcp.auth.redirect_listener import RedirectListener
from aic_mcp.auth.token_exchange import TokenExchangeClient
from aic_mcp.auth.token_storage import (
    FileStorage,
    KeychainStorage,
    TokenRecord,
    TokenStore,
    get_token_storage_info,
)

__all__ = [
    # Token storage
    "TokenRecord",
    "TokenStore",
    "KeychainStorage",
    "FileStorage",
    "get_token_storage_info",
    # PKCE
    "PkcePair",
    "generate_pkce_pair",
    "generate_state",
    "PkceFlow",
    "RedirectListener",
    # Device flow
    "DeviceFlow",
    "DeviceCodeResponse",
    "ElicitationChannel",
    "ElicitationOutcome",
    "FastMCPElicitationChannel",
    # Token exchange
    "TokenExchangeClient",
]
