"""OAuth Device Authorization Flow (RFC 8628) for containerized mode.

There is no browser next to a containerized server, so the user is asked
through MCP elicitation to open the verification URL on their own machine.
PKCE is layered on top: the device code request carries the challenge and
each poll carries the verifier.

Flow:
1. Request device code (with PKCE challenge)
2. Elicit: "open this URL and respond when done"; anything but accept cancels
3. Poll token endpoint every `interval` seconds until approved, denied or expired
4. Persist the token record and notify the client that the action completed
"""

from __future__ import annotations

__all__ = [
    "DeviceCodeResponse",
    "DeviceFlow",
]

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from aic_mcp.auth.elicitation import ElicitationChannel, build_device_prompt
from aic_mcp.auth.oauth_http import ensure_success, post_form, read_json
from aic_mcp.auth.pkce import PkcePair, generate_pkce_pair
from aic_mcp.auth.token_parser import parse_token_response
from aic_mcp.auth.token_storage import TokenRecord, TokenStore
from aic_mcp.constants import (
    DEVICE_FLOW_POLL_INTERVAL_SECONDS,
    DEVICE_FLOW_SLOW_DOWN_INCREMENT_SECONDS,
    GRANT_TYPE_DEVICE_CODE,
)
from aic_mcp.exceptions import (
    ConfigurationError,
    DeviceFlowDeniedError,
    DeviceFlowExpiredError,
    TransportError,
    UserCancelledError,
)
from aic_mcp.telemetry.system.system_logger import get_system_logger

if TYPE_CHECKING:
    from aic_mcp.config import AICConfig

_logger = get_system_logger()

_DENIAL_ERRORS = frozenset({"access_denied", "invalid_grant"})


@dataclass
class DeviceCodeResponse:
    """Response from device authorization request.

    Attributes:
        device_code: Code used to poll for tokens (don't show to user).
        user_code: Code user enters in browser.
        verification_uri: URL user opens to authenticate (optional if the complete URL is sent).
        verification_uri_complete: URL with code embedded (optional if the plain URL is sent).
        expires_in: Seconds until codes expire.
        interval: Polling interval in seconds.
    """

    device_code: str
    user_code: str
    verification_uri: str | None
    verification_uri_complete: str | None
    expires_in: int
    interval: int

    @property
    def prompt_uri(self) -> str:
        """URL to show the user (prefers the one with the code embedded)."""
        return self.verification_uri_complete or self.verification_uri or ""

    @classmethod
    def from_response(cls, data: Any, endpoint: str) -> "DeviceCodeResponse":
        """Parse from the tenant's device authorization response.

        Raises:
            TransportError: If required fields are missing, or neither
                verification URI is present.
        """
        try:
            response = cls(
                device_code=data["device_code"],
                user_code=data.get("user_code", ""),
                verification_uri=data.get("verification_uri"),
                verification_uri_complete=data.get("verification_uri_complete"),
                expires_in=int(data["expires_in"]),
                interval=int(data.get("interval") or DEVICE_FLOW_POLL_INTERVAL_SECONDS),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise TransportError(
                f"Device code response is missing required fields: {e}",
                endpoint=endpoint,
                status_code=200,
            ) from e

        if not response.prompt_uri:
            raise TransportError(
                "Device code response is missing required fields: verification_uri or verification_uri_complete",
                endpoint=endpoint,
                status_code=200,
            )
        return response


class DeviceFlow:
    """Device authorization with user interaction through elicitation.

    Usage:
        flow = DeviceFlow(config, storage, http_client, elicitation)
        record = await flow.run(["fr:idm:*"])
    """

    def __init__(
        self,
        config: "AICConfig",
        storage: TokenStore,
        http_client: httpx.AsyncClient,
        elicitation: ElicitationChannel | None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize device flow.

        Args:
            config: Tenant and client configuration.
            storage: Where the primary token record is persisted.
            http_client: Client for the device and token endpoints.
            elicitation: Channel used to prompt the user.
            sleep: Awaitable sleep between polls (injectable for tests).
            clock: Monotonic clock for the expiry deadline (injectable for tests).
        """
        self._config = config
        self._storage = storage
        self._client = http_client
        self._elicitation = elicitation
        self._sleep = sleep
        self._clock = clock

    async def run(self, scopes: Sequence[str]) -> TokenRecord:
        """Run the full flow and persist the resulting record.

        Raises:
            ConfigurationError: No elicitation channel available.
            TransportError: Device code request or polling failed.
            UserCancelledError: User did not accept the prompt.
            DeviceFlowDeniedError: Authorization server denied the request.
            DeviceFlowExpiredError: Not approved before expires_in elapsed.
            TokenStorageError: Record could not be persisted (record attached).
        """
        elicitation = self._elicitation
        if elicitation is None:
            raise ConfigurationError("Device authorization requires an elicitation channel")

        pkce = generate_pkce_pair()
        started = self._clock()
        device_code = await self.request_device_code(scopes, pkce)
        deadline = started + device_code.expires_in

        outcome = await elicitation.request_user_action(
            build_device_prompt(device_code.prompt_uri), device_code.prompt_uri
        )
        if not outcome.accepted:
            _logger.warning(
                {
                    "event": "device_flow_cancelled",
                    "message": f"User cancelled authentication (action: {outcome.action})",
                    "action": outcome.action,
                }
            )
            raise UserCancelledError(f"User cancelled authentication (action: {outcome.action})")

        _logger.info(
            {
                "event": "device_flow_polling",
                "message": "User accepted authentication prompt, polling for token",
                "interval": device_code.interval,
                "expires_in": device_code.expires_in,
            }
        )
        record = await self.poll_for_token(device_code, pkce.verifier, deadline)

        try:
            await asyncio.to_thread(self._storage.save, record)
        finally:
            await self._notify_complete(elicitation, outcome.elicitation_id)

        _logger.info(
            {
                "event": "device_flow_completed",
                "message": "Authenticated with PingOne AIC",
                "tenant_host": record.tenant_host,
                "expires_at": record.expires_at,
            }
        )
        return record

    async def request_device_code(self, scopes: Sequence[str], pkce: PkcePair) -> DeviceCodeResponse:
        """Request a device code from the tenant.

        Raises:
            TransportError: If the request fails or the response is malformed.
        """
        url = self._config.device_code_url
        response = await post_form(
            self._client,
            url,
            {
                "client_id": self._config.client_id,
                "scope": " ".join(scopes),
                "code_challenge": pkce.challenge,
                "code_challenge_method": "S256",
            },
            operation="Device code request",
        )
        ensure_success(response, operation="Device code request")
        return DeviceCodeResponse.from_response(read_json(response, operation="Device code request"), url)

    async def poll_for_token(self, device_code: DeviceCodeResponse, verifier: str, deadline: float) -> TokenRecord:
        """Poll token endpoint until the user completes authentication.

        Args:
            device_code: Response from request_device_code().
            verifier: PKCE verifier matching the challenge sent with the device code request.
            deadline: Clock value after which no further poll is made.

        Returns:
            TokenRecord for the approved request.
        """
        url = self._config.token_url
        interval = device_code.interval

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            await self._sleep(min(interval, remaining))
            if self._clock() >= deadline:
                break

            response = await post_form(
                self._client,
                url,
                {
                    "grant_type": GRANT_TYPE_DEVICE_CODE,
                    "device_code": device_code.device_code,
                    "client_id": self._config.client_id,
                    "code_verifier": verifier,
                },
                operation="Device token polling",
            )

            if response.is_success:
                data = read_json(response, operation="Device token polling")
                return parse_token_response(data, self._config.tenant_host, url)

            error = _oauth_error(response)

            if error == "authorization_pending":
                # User hasn't completed auth yet
                continue

            if error == "slow_down":
                interval += DEVICE_FLOW_SLOW_DOWN_INCREMENT_SECONDS
                _logger.info(
                    {
                        "event": "device_flow_slow_down",
                        "message": f"Server asked to slow down, polling every {interval}s",
                        "interval": interval,
                    }
                )
                continue

            if error in _DENIAL_ERRORS:
                _logger.warning(
                    {
                        "event": "device_flow_denied",
                        "message": f"Device authorization denied: {error}",
                        "reason": error,
                    }
                )
                raise DeviceFlowDeniedError(f"Authorization was denied ({error}).", reason=error)

            if error == "expired_token":
                break

            # Unknown error or non-JSON body
            ensure_success(response, operation="Device token polling")

        _logger.warning(
            {
                "event": "device_flow_expired",
                "message": "Device code expired before the user approved the request",
                "expires_in": device_code.expires_in,
            }
        )
        raise DeviceFlowExpiredError("Device code expired - authentication timed out")

    async def _notify_complete(self, elicitation: ElicitationChannel, elicitation_id: str) -> None:
        try:
            await elicitation.notify_complete(elicitation_id)
        except Exception as e:
            # Completion notice is informational only
            _logger.warning(
                {
                    "event": "elicitation_complete_notify_failed",
                    "message": f"Failed to notify elicitation completion: {e}",
                    "elicitation_id": elicitation_id,
                    "error_type": type(e).__name__,
                }
            )


def _oauth_error(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return None
