"""Shared OAuth token response parsing.

Used by the PKCE code exchange, the device flow and the token exchange so the
access_token / expires_in handling lives in one place.
"""

from __future__ import annotations

__all__ = ["extract_access_token", "parse_token_response"]

from typing import Any

from aic_mcp.auth.token_storage import TokenRecord, now_ms
from aic_mcp.constants import DEFAULT_TOKEN_LIFETIME_SECONDS
from aic_mcp.exceptions import TransportError


def extract_access_token(data: Any, endpoint: str) -> str:
    """Pull access_token out of a token endpoint response body.

    Raises:
        TransportError: If the body is not an object or has no access_token.
    """
    if not isinstance(data, dict) or not isinstance(data.get("access_token"), str) or not data["access_token"]:
        raise TransportError(
            "Token response did not contain an access_token",
            endpoint=endpoint,
            status_code=200,
        )
    return data["access_token"]


def parse_token_response(data: Any, tenant_host: str, endpoint: str) -> TokenRecord:
    """Parse OAuth token response into a TokenRecord.

    expiresAt is computed as now + expires_in * 1000. expires_in defaults to
    one hour when the server omits it.

    Args:
        data: Token response JSON from the tenant.
        tenant_host: Tenant that issued the token.
        endpoint: Token endpoint URL (for error reporting).

    Returns:
        TokenRecord ready for storage.
    """
    access_token = extract_access_token(data, endpoint)
    expires_in = data.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS)
    try:
        expires_in = int(expires_in)
    except (TypeError, ValueError):
        expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS

    return TokenRecord(
        access_token=access_token,
        expires_at=now_ms() + expires_in * 1000,
        tenant_host=tenant_host,
    )
