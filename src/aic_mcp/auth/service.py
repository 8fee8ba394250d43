"""Acquisition coordinator: hands every tool a freshly exchanged, scoped token.

get_token() may be called concurrently from many tool calls. The primary
token comes from the token store when it is usable; otherwise exactly one
login flow runs and every concurrent caller waits for it. The primary token
is then exchanged (RFC 8693) for the tool's scopes on every call.

Cache trust on startup:
    A token left in the store by an earlier process is only trusted once this
    process has authenticated itself, unless allow_cached_on_first_request is
    set. This makes the first tool call of a session prove the user is present.

Usage:
    service = init_auth_service(ALL_SCOPES, config, elicitation=channel)
    token = await service.get_token(["fr:idm:*"])
    ...
    await service.aclose()
"""

from __future__ import annotations

__all__ = [
    "AuthService",
    "init_auth_service",
]

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx

from aic_mcp.auth.device_flow import DeviceFlow
from aic_mcp.auth.oauth_http import create_oauth_client
from aic_mcp.auth.pkce_flow import PkceFlow
from aic_mcp.auth.token_exchange import TokenExchangeClient
from aic_mcp.auth.token_storage import TokenRecord, TokenStore
from aic_mcp.config import ContainerizedMode, resolve_mode
from aic_mcp.exceptions import AuthenticationError, PrimaryTokenRejectedError, TokenStorageError
from aic_mcp.telemetry.system.system_logger import get_system_logger

if TYPE_CHECKING:
    from aic_mcp.auth.elicitation import ElicitationChannel
    from aic_mcp.config import AICConfig, Mode

_logger = get_system_logger()


class AuthService:
    """Owns the primary token lifecycle for one server process.

    Not a singleton: create one with init_auth_service() and pass it to the
    tools that need it.
    """

    def __init__(
        self,
        config: "AICConfig",
        mode: "Mode",
        all_scopes: Sequence[str],
        *,
        elicitation: "ElicitationChannel | None" = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Tenant and client configuration.
            mode: Process mode resolved at startup (selects flow and storage).
            all_scopes: Every scope any tool may request; the primary token
                is requested with all of them.
            elicitation: Channel for device flow prompts (containerized mode).
            http_client: Shared client for OAuth calls; created (and owned) if None.

        Raises:
            ValueError: If all_scopes is empty.
        """
        if not all_scopes:
            raise ValueError("Scopes parameter is required")

        self._config = config
        self._mode = mode
        self._all_scopes = tuple(all_scopes)
        self._elicitation = elicitation
        self._client = http_client or create_oauth_client()
        self._owns_client = http_client is None
        self._exchange = TokenExchangeClient(config, self._client)

        self._lock = asyncio.Lock()
        self._in_flight: asyncio.Task[TokenRecord] | None = None
        self._has_authenticated_this_session = False
        # Kept when persisting a fresh record failed
        self._session_record: TokenRecord | None = None

    @property
    def mode(self) -> "Mode":
        return self._mode

    @property
    def storage(self) -> TokenStore:
        return self._mode.storage

    @property
    def has_authenticated_this_session(self) -> bool:
        return self._has_authenticated_this_session

    @property
    def is_authenticating(self) -> bool:
        """True while a login flow is in flight."""
        return self._in_flight is not None

    async def get_token(self, scopes: Sequence[str]) -> str:
        """Get an access token limited to the given scopes.

        Args:
            scopes: Scopes required by the calling tool.

        Returns:
            Scoped access token from the token exchange.

        Raises:
            ValueError: If scopes is empty.
            AuthenticationError: If no primary token could be obtained or exchanged.
            TokenStorageError: If a fresh token could not be persisted.
        """
        if not scopes:
            raise ValueError("Scopes parameter is required")

        primary = await self._get_primary_token()
        try:
            return await self._exchange.exchange(primary.access_token, scopes)
        except PrimaryTokenRejectedError:
            _logger.warning(
                {
                    "event": "primary_token_rejected",
                    "message": "Token exchange rejected the stored token, re-authenticating",
                    "tenant_host": primary.tenant_host,
                }
            )
            await self._discard_rejected(primary)
            primary = await self._authenticate()
            return await self._exchange.exchange(primary.access_token, scopes)

    async def _get_primary_token(self) -> TokenRecord:
        task = self._in_flight
        if task is not None:
            return await self._await_flow(task)

        cached = await self._load_cached()
        if cached is not None:
            return cached
        return await self._authenticate()

    async def _load_cached(self) -> TokenRecord | None:
        if not self._config.allow_cached_on_first_request and not self._has_authenticated_this_session:
            _logger.info(
                {
                    "event": "token_cache_skipped",
                    "message": "First request of this session, authenticating before trusting stored token",
                }
            )
            return None

        stored: TokenRecord | None = None
        try:
            stored = await asyncio.to_thread(self.storage.load)
        except TokenStorageError as e:
            _logger.warning(
                {
                    "event": "token_storage_read_failed",
                    "message": f"Failed to read stored token, treating as missing: {e}",
                    "failure_type": e.failure_type,
                }
            )

        for record in (stored, self._session_record):
            if record is not None and self._is_usable(record):
                return record
        return None

    def _is_usable(self, record: TokenRecord) -> bool:
        if record.is_expired:
            _logger.info({"event": "token_expired", "message": "Stored token has expired"})
            return False
        if not record.is_for_tenant(self._config.tenant_host):
            _logger.warning(
                {
                    "event": "token_tenant_mismatch",
                    "message": (
                        f"Stored token was issued for {record.tenant_host}, "
                        f"configured tenant is {self._config.tenant_host}"
                    ),
                    "stored_tenant_host": record.tenant_host,
                    "configured_tenant_host": self._config.tenant_host,
                }
            )
            return False
        return True

    async def _authenticate(self) -> TokenRecord:
        """Start a login flow, or join the one already running."""
        async with self._lock:
            task = self._in_flight
            if task is None:
                task = asyncio.create_task(self._run_flow())
                task.add_done_callback(self._on_flow_done)
                self._in_flight = task
        return await self._await_flow(task)

    async def _await_flow(self, task: asyncio.Task[TokenRecord]) -> TokenRecord:
        # Shielded: one caller going away must not cancel the shared attempt
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and current is not None and not current.cancelling():
                raise AuthenticationError("Authentication was aborted.") from None
            raise

    async def _run_flow(self) -> TokenRecord:
        try:
            try:
                if isinstance(self._mode, ContainerizedMode):
                    record = await self._run_device_flow()
                else:
                    record = await self._run_pkce_flow()
            except TokenStorageError as e:
                if e.record is not None:
                    # Authenticated but not persisted: usable for this process only
                    self._session_record = e.record
                    self._has_authenticated_this_session = True
                raise
            self._session_record = record
            self._has_authenticated_this_session = True
            return record
        finally:
            self._in_flight = None

    async def _run_pkce_flow(self) -> TokenRecord:
        flow = PkceFlow(self._config, self.storage, self._client)
        return await flow.run(self._all_scopes)

    async def _run_device_flow(self) -> TokenRecord:
        flow = DeviceFlow(self._config, self.storage, self._client, self._elicitation)
        return await flow.run(self._all_scopes)

    def _on_flow_done(self, task: asyncio.Task[TokenRecord]) -> None:
        # Covers a task cancelled before it ever ran
        if self._in_flight is task:
            self._in_flight = None

        if task.cancelled():
            _logger.info({"event": "authentication_aborted", "message": "Authentication attempt was aborted"})
            return
        error = task.exception()
        if error is not None:
            _logger.error(
                {
                    "event": "authentication_failed",
                    "message": f"Authentication failed: {error}",
                    "failure_type": getattr(error, "failure_type", "unknown"),
                    "error_type": type(error).__name__,
                }
            )

    async def _discard_rejected(self, rejected: TokenRecord) -> None:
        if self._session_record is not None and self._session_record.access_token == rejected.access_token:
            self._session_record = None
        try:
            stored = await asyncio.to_thread(self.storage.load)
            if stored is not None and stored.access_token == rejected.access_token:
                await asyncio.to_thread(self.storage.erase)
        except TokenStorageError as e:
            _logger.warning(
                {
                    "event": "token_storage_erase_failed",
                    "message": f"Failed to remove rejected token from storage: {e}",
                    "failure_type": e.failure_type,
                }
            )

    async def abort(self) -> bool:
        """Cancel the in-flight login flow, if any.

        Waiting callers receive AuthenticationError. The loopback listener or
        poll loop is torn down by the flow itself.

        Returns:
            True if a flow was cancelled.
        """
        task = self._in_flight
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.wait([task])
        return True

    async def aclose(self) -> None:
        """Abort any flow and release the HTTP client if this service created it."""
        await self.abort()
        if self._owns_client:
            await self._client.aclose()


def init_auth_service(
    all_scopes: Sequence[str],
    config: "AICConfig",
    elicitation: "ElicitationChannel | None" = None,
    http_client: httpx.AsyncClient | None = None,
) -> AuthService:
    """Create the process's AuthService.

    The mode (flow + storage) is resolved here, once, and never changes.

    Args:
        all_scopes: Union of every tool's scopes.
        config: Loaded configuration.
        elicitation: Channel for device flow prompts (required in containerized mode).
        http_client: Optional shared OAuth client (for testing).

    Returns:
        Configured AuthService.

    Raises:
        ValueError: If all_scopes is empty.
    """
    mode = resolve_mode(config)
    if isinstance(mode, ContainerizedMode) and elicitation is None:
        _logger.warning(
            {
                "event": "elicitation_channel_missing",
                "message": "Containerized mode without an elicitation channel; device login will fail",
            }
        )

    service = AuthService(config, mode, all_scopes, elicitation=elicitation, http_client=http_client)
    _logger.info(
        {
            "event": "auth_service_initialized",
            "message": f"Authentication ready for {config.tenant_host} ({type(mode).__name__})",
            "tenant_host": config.tenant_host,
            "mode": type(mode).__name__,
            "storage": mode.storage.backend_name,
        }
    )
    return service
