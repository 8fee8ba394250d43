"""Application-wide constants for aic-mcp.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "SERVER_NAME",
    # OAuth clients
    "CLIENT_ID",
    "EXCHANGE_CLIENT_ID",
    # Loopback redirect
    "DEFAULT_REDIRECT_PORT",
    "REDIRECT_LISTENER_HOST",
    "REDIRECT_LISTENER_BACKLOG",
    "REDIRECT_LISTENER_SHUTDOWN_TIMEOUT_SECONDS",
    # Token storage
    "KEYCHAIN_SERVICE",
    "KEYCHAIN_ACCOUNT",
    "DEFAULT_TOKEN_FILE",
    "DEFAULT_LOG_DIR",
    # OAuth HTTP
    "OAUTH_CLIENT_TIMEOUT_SECONDS",
    "DEFAULT_TOKEN_LIFETIME_SECONDS",
    "LOG_BODY_MAX_CHARS",
    # Device flow
    "DEVICE_FLOW_POLL_INTERVAL_SECONDS",
    "DEVICE_FLOW_SLOW_DOWN_INCREMENT_SECONDS",
    # Grant and token types
    "GRANT_TYPE_AUTHORIZATION_CODE",
    "GRANT_TYPE_DEVICE_CODE",
    "GRANT_TYPE_TOKEN_EXCHANGE",
    "TOKEN_TYPE_ACCESS_TOKEN",
    # Tenant API
    "TRANSACTION_ID_HEADER",
    "API_CLIENT_TIMEOUT_SECONDS",
]

from platformdirs import user_log_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for logger names, directory names, etc.
APP_NAME: str = "aic-mcp"

# Name advertised to MCP clients
SERVER_NAME: str = "pingone-aic-mcp-server"

# ============================================================================
# OAuth Clients
# ============================================================================

# Public client registered in the tenant for interactive user login
CLIENT_ID: str = "AICMCPClient"

# Client allowed to perform RFC 8693 token exchange (scope narrowing)
EXCHANGE_CLIENT_ID: str = "AICMCPExchangeClient"

# ============================================================================
# Loopback Redirect Listener (PKCE flow)
# ============================================================================

# Must match the redirect URI registered for CLIENT_ID (http://localhost:3000)
DEFAULT_REDIRECT_PORT: int = 3000

# Bind address for the listener. Loopback only, never exposed to the network.
REDIRECT_LISTENER_HOST: str = "127.0.0.1"

REDIRECT_LISTENER_BACKLOG: int = 16

# Upper bound on waiting for uvicorn to finish the final response on stop
REDIRECT_LISTENER_SHUTDOWN_TIMEOUT_SECONDS: float = 5.0

# ============================================================================
# Token Storage
# ============================================================================

# OS keychain entry (attended mode)
KEYCHAIN_SERVICE: str = "PingOneAIC_MCP_Server"
KEYCHAIN_ACCOUNT: str = "user-token"

# Token file (containerized mode). The image creates /app/tokens owned by
# the runtime user; tokens disappear with the container.
DEFAULT_TOKEN_FILE: str = "/app/tokens/token.json"

# Default directory for the optional JSONL system log
DEFAULT_LOG_DIR: str = user_log_dir(APP_NAME)

# ============================================================================
# OAuth HTTP
# ============================================================================

# Timeout for OAuth HTTP requests (code exchange, device code, polling, token exchange)
OAUTH_CLIENT_TIMEOUT_SECONDS: int = 30

# Used when a token response omits expires_in (AIC default access token lifetime)
DEFAULT_TOKEN_LIFETIME_SECONDS: int = 3600

# Error bodies are truncated to this many characters in logs
LOG_BODY_MAX_CHARS: int = 500

# ============================================================================
# OAuth Device Flow (RFC 8628)
# ============================================================================

# Used when the device authorization response omits interval
DEVICE_FLOW_POLL_INTERVAL_SECONDS: int = 5

# RFC 8628 section 3.5: slow_down increases the interval by 5 seconds
DEVICE_FLOW_SLOW_DOWN_INCREMENT_SECONDS: int = 5

# ============================================================================
# Grant and Token Types
# ============================================================================

GRANT_TYPE_AUTHORIZATION_CODE: str = "authorization_code"
GRANT_TYPE_DEVICE_CODE: str = "urn:ietf:params:oauth:grant-type:device_code"
GRANT_TYPE_TOKEN_EXCHANGE: str = "urn:ietf:params:oauth:grant-type:token-exchange"
TOKEN_TYPE_ACCESS_TOKEN: str = "urn:ietf:params:oauth:token-type:access_token"

# ============================================================================
# Tenant REST API
# ============================================================================

# Returned by AIC on every response, useful when correlating with logs
TRANSACTION_ID_HEADER: str = "x-forgerock-transactionid"

API_CLIENT_TIMEOUT_SECONDS: int = 30
