"""RFC 8693 token exchange: narrow the primary token to a tool's scopes.

The primary token carries every scope the server may need and is never
handed to a tool. Each tool call exchanges it for a short-lived token limited
to that tool's scopes.
"""

from __future__ import annotations

__all__ = ["TokenExchangeClient"]

from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx

from aic_mcp.auth.oauth_http import ensure_success, post_form, read_json
from aic_mcp.auth.token_parser import extract_access_token
from aic_mcp.constants import GRANT_TYPE_TOKEN_EXCHANGE, TOKEN_TYPE_ACCESS_TOKEN
from aic_mcp.exceptions import PrimaryTokenRejectedError, TransportError

if TYPE_CHECKING:
    from aic_mcp.config import AICConfig

_OPERATION = "Token exchange"


class TokenExchangeClient:
    """Exchanges the primary token at the tenant's token endpoint."""

    def __init__(self, config: "AICConfig", http_client: httpx.AsyncClient) -> None:
        self._config = config
        self._client = http_client

    async def exchange(self, primary_token: str, scopes: Sequence[str]) -> str:
        """Exchange the primary token for a scoped access token.

        Args:
            primary_token: Broad-scope access token from the login flow.
            scopes: Scopes required by the calling tool.

        Returns:
            Scoped access token.

        Raises:
            PrimaryTokenRejectedError: Token endpoint answered 401.
            TransportError: Any other failure.
        """
        url = self._config.token_url
        response = await post_form(
            self._client,
            url,
            {
                "grant_type": GRANT_TYPE_TOKEN_EXCHANGE,
                "subject_token": primary_token,
                "subject_token_type": TOKEN_TYPE_ACCESS_TOKEN,
                "requested_token_type": TOKEN_TYPE_ACCESS_TOKEN,
                "scope": " ".join(scopes),
                "client_id": self._config.exchange_client_id,
            },
            operation=_OPERATION,
        )
        error_cls: type[TransportError] = (
            PrimaryTokenRejectedError if response.status_code == httpx.codes.UNAUTHORIZED else TransportError
        )
        ensure_success(response, operation=_OPERATION, error_cls=error_cls)
        return extract_access_token(read_json(response, operation=_OPERATION), url)
