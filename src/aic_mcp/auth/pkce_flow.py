"""OAuth authorization code flow with PKCE (attended mode).

Flow:
1. Generate PKCE pair and CSRF state
2. Bind the loopback listener (fails fast if the port is taken)
3. Open the tenant's authorize URL in the default browser
4. Wait for the redirect (origin, state and code are validated by the listener)
5. Exchange the code at the token endpoint
6. Persist the primary token record

The listener is stopped on every exit path, including cancellation.
"""

from __future__ import annotations

__all__ = [
    "PkceFlow",
    "build_authorization_url",
]

import asyncio
import webbrowser
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING
from urllib.parse import urlencode

import httpx

from aic_mcp.auth.oauth_http import ensure_success, post_form, read_json
from aic_mcp.auth.pkce import PkcePair, generate_pkce_pair, generate_state
from aic_mcp.auth.redirect_listener import RedirectListener
from aic_mcp.auth.token_parser import parse_token_response
from aic_mcp.auth.token_storage import TokenRecord, TokenStore
from aic_mcp.constants import GRANT_TYPE_AUTHORIZATION_CODE
from aic_mcp.exceptions import AuthenticationTimeoutError
from aic_mcp.telemetry.system.system_logger import get_system_logger

if TYPE_CHECKING:
    from aic_mcp.config import AICConfig

_logger = get_system_logger()


def build_authorization_url(
    config: "AICConfig",
    scopes: Sequence[str],
    pkce: PkcePair,
    state: str,
    redirect_uri: str,
) -> str:
    """Build the /am/oauth2/authorize URL for the browser."""
    query = urlencode(
        {
            "response_type": "code",
            "client_id": config.client_id,
            "scope": " ".join(scopes),
            "redirect_uri": redirect_uri,
            "code_challenge": pkce.challenge,
            "code_challenge_method": "S256",
            "state": state,
        }
    )
    return f"{config.authorize_url}?{query}"


class PkceFlow:
    """Browser-based login for a user at the desktop.

    Usage:
        flow = PkceFlow(config, storage, http_client)
        record = await flow.run(["fr:idm:*"])
    """

    def __init__(
        self,
        config: "AICConfig",
        storage: TokenStore,
        http_client: httpx.AsyncClient,
        *,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        """Initialize PKCE flow.

        Args:
            config: Tenant and client configuration.
            storage: Where the primary token record is persisted.
            http_client: Client for the token endpoint.
            open_browser: Launches the authorize URL (injectable for tests).
        """
        self._config = config
        self._storage = storage
        self._client = http_client
        self._open_browser = open_browser

    async def run(self, scopes: Sequence[str]) -> TokenRecord:
        """Run the full flow and persist the resulting record.

        Raises:
            RedirectListenerError: Loopback port could not be bound.
            SecurityRejection: Redirect failed origin or state validation.
            AuthorizationCodeMissingError: Redirect carried no code.
            AuthenticationTimeoutError: No redirect within pkce_timeout_seconds.
            TransportError: Code exchange failed.
            TokenStorageError: Record could not be persisted (record attached).
        """
        pkce = generate_pkce_pair()
        state = generate_state()

        listener = RedirectListener(
            tenant_host=self._config.tenant_host,
            expected_state=state,
            port=self._config.redirect_port,
            require_origin_header=self._config.require_origin_header,
        )
        await listener.start()
        redirect_uri = listener.redirect_uri
        try:
            self._launch_browser(build_authorization_url(self._config, scopes, pkce, state, redirect_uri))
            code = await self._wait_for_code(listener)
        finally:
            await listener.stop()

        record = await self._exchange_code(code, pkce.verifier, redirect_uri)
        await asyncio.to_thread(self._storage.save, record)

        _logger.info(
            {
                "event": "pkce_flow_completed",
                "message": "Authenticated with PingOne AIC",
                "tenant_host": record.tenant_host,
                "expires_at": record.expires_at,
            }
        )
        return record

    def _launch_browser(self, url: str) -> None:
        try:
            opened = self._open_browser(url)
        except webbrowser.Error as e:
            _logger.warning({"event": "browser_open_failed", "message": f"Could not open browser: {e}"})
            opened = False

        if not opened:
            _logger.warning(
                {
                    "event": "browser_open_failed",
                    "message": f"Open this URL in your browser to authenticate: {url}",
                }
            )

    async def _wait_for_code(self, listener: RedirectListener) -> str:
        timeout = self._config.pkce_timeout_seconds
        if timeout is None:
            return await listener.wait_for_code()
        try:
            return await asyncio.wait_for(listener.wait_for_code(), timeout)
        except asyncio.TimeoutError:
            _logger.warning(
                {
                    "event": "pkce_flow_timeout",
                    "message": f"No authorization redirect received within {timeout} seconds",
                }
            )
            raise AuthenticationTimeoutError(
                f"Authentication timed out after {timeout} seconds waiting for the browser redirect."
            ) from None

    async def _exchange_code(self, code: str, verifier: str, redirect_uri: str) -> TokenRecord:
        url = self._config.token_url
        response = await post_form(
            self._client,
            url,
            {
                "grant_type": GRANT_TYPE_AUTHORIZATION_CODE,
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": verifier,
                "client_id": self._config.client_id,
            },
            operation="Authorization code exchange",
        )
        ensure_success(response, operation="Authorization code exchange")
        data = read_json(response, operation="Authorization code exchange")
        return parse_token_response(data, self._config.tenant_host, url)
