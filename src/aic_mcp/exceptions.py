"""Custom exceptions for aic-mcp.

All exceptions derive from AICMCPError. They are raised by the auth engine
and propagate to the tool boundary, where the message is returned to the MCP
client as tool output (the server keeps running).

Categories:
    - ConfigurationError: Missing or invalid tenant/client configuration
    - TransportError: Non-2xx or network failure talking to an OAuth endpoint
    - SecurityRejection: Loopback redirect failed origin or CSRF validation
    - UserCancelledError: User declined the authentication prompt
    - AuthenticationTimeoutError: No approval before the deadline
    - TokenStorageError: Reading or writing the token store failed
    - TenantApiError: Tenant REST API returned an error (tool calls)

Usage:
    from aic_mcp.exceptions import TransportError, UserCancelledError
"""

from __future__ import annotations

__all__ = [
    "AICMCPError",
    "AuthenticationError",
    "AuthenticationTimeoutError",
    "AuthorizationCodeMissingError",
    "ConfigurationError",
    "DeviceFlowDeniedError",
    "DeviceFlowExpiredError",
    "InvalidInputError",
    "OriginValidationError",
    "PrimaryTokenRejectedError",
    "RedirectListenerError",
    "SecurityRejection",
    "StateMismatchError",
    "TenantApiError",
    "TokenStorageError",
    "TransportError",
    "UserCancelledError",
]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aic_mcp.auth.token_storage import TokenRecord


class AICMCPError(Exception):
    """Base exception for aic-mcp.

    Attributes:
        failure_type: Category string for structured logging.
    """

    failure_type: str = "unknown"


class ConfigurationError(AICMCPError):
    """Configuration is missing or invalid.

    Raised when:
    - AIC_BASE_URL is not set or has no hostname
    - An AIC_MCP_* variable cannot be parsed
    - Device flow runs without an elicitation channel

    Fatal, not retried.
    """

    failure_type = "configuration_failure"


class AuthenticationError(AICMCPError):
    """Authentication failed - no usable access token could be obtained."""

    failure_type = "authentication_failure"


class TransportError(AuthenticationError):
    """An OAuth endpoint returned a non-2xx response or was unreachable.

    Attributes:
        endpoint: URL that was called.
        status_code: HTTP status, None for network-level failures.
        body: Response body text (untruncated), None for network failures.
    """

    failure_type = "transport_failure"

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body


class PrimaryTokenRejectedError(TransportError):
    """Token exchange returned 401: the primary token is no longer accepted.

    The coordinator handles this by re-authenticating once.
    """

    failure_type = "primary_token_rejected"


class SecurityRejection(AuthenticationError):
    """Loopback redirect failed a security check. Always fatal for the attempt."""

    failure_type = "security_rejection"


class OriginValidationError(SecurityRejection):
    """Referer/Origin hostname does not exactly match the tenant host."""

    failure_type = "origin_validation_failure"


class StateMismatchError(SecurityRejection):
    """CSRF protection failed: state parameter missing or not the one issued."""

    failure_type = "csrf_state_mismatch"


class AuthorizationCodeMissingError(AuthenticationError):
    """Redirect carried no authorization code (e.g. provider returned error=)."""

    failure_type = "authorization_code_missing"


class RedirectListenerError(AuthenticationError):
    """Loopback listener could not bind or stopped serving unexpectedly."""

    failure_type = "redirect_listener_failure"


class UserCancelledError(AuthenticationError):
    """User declined or cancelled the authentication prompt."""

    failure_type = "user_cancelled"


class AuthenticationTimeoutError(AuthenticationError):
    """User did not complete authentication before the deadline."""

    failure_type = "authentication_timeout"


class DeviceFlowExpiredError(AuthenticationTimeoutError):
    """Device code expired before the user approved the request."""

    failure_type = "device_code_expired"


class DeviceFlowDeniedError(AuthenticationError):
    """Authorization server denied the device authorization request.

    Attributes:
        reason: OAuth error code (access_denied, invalid_grant).
    """

    failure_type = "device_flow_denied"

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class TokenStorageError(AICMCPError):
    """Reading or writing the token store failed.

    Read failures are logged and treated as a cache miss. Write failures after
    a successful authentication are surfaced to the caller; the freshly
    obtained record is attached so the service can keep using it in memory.

    Attributes:
        record: Token record that could not be persisted (write failures only).
    """

    failure_type = "token_storage_failure"

    def __init__(self, message: str, *, record: "TokenRecord | None" = None) -> None:
        super().__init__(message)
        self.record = record


class TenantApiError(AICMCPError):
    """Tenant REST API call returned a non-2xx response.

    The message follows "<status> <reason> - <body>", with the transaction ID
    appended when the tenant sent one.

    Attributes:
        status_code: HTTP status.
        body: Response body text.
        transaction_id: Value of x-forgerock-transactionid, if present.
    """

    failure_type = "tenant_api_failure"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str,
        transaction_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.transaction_id = transaction_id


class InvalidInputError(AICMCPError):
    """Tool argument failed validation (e.g. path traversal in an object ID)."""

    failure_type = "invalid_input"
