"""Loopback HTTP listener that receives the PKCE authorization redirect.

A single-use Starlette app served by uvicorn on 127.0.0.1. The socket is
bound before the browser is opened so a port conflict fails fast. Every
request is validated in order (origin, CSRF state, code); the first request
settles the attempt, whatever its outcome, and the listener shuts down.

Usage:
    listener = RedirectListener(tenant_host=host, expected_state=state, port=3000)
    await listener.start()
    try:
        code = await listener.wait_for_code()
    finally:
        await listener.stop()
"""

from __future__ import annotations

__all__ = [
    "RedirectListener",
    "validate_origin",
]

import asyncio
import errno
import hmac
import logging
import socket
from collections.abc import Mapping
from urllib.parse import urlsplit

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse
from starlette.routing import Route

from aic_mcp.auth.result_page import render_result_page
from aic_mcp.constants import (
    REDIRECT_LISTENER_BACKLOG,
    REDIRECT_LISTENER_HOST,
    REDIRECT_LISTENER_SHUTDOWN_TIMEOUT_SECONDS,
)
from aic_mcp.exceptions import (
    AuthenticationError,
    AuthorizationCodeMissingError,
    OriginValidationError,
    RedirectListenerError,
    SecurityRejection,
    StateMismatchError,
)
from aic_mcp.telemetry.system.system_logger import get_system_logger

_logger = get_system_logger()


def validate_origin(headers: Mapping[str, str], tenant_host: str, *, require_header: bool = False) -> None:
    """Check that the redirect came from the tenant's login pages.

    Uses Referer (or the misspelled Referrer), falling back to Origin. The
    hostname must equal the tenant host exactly; subdomains and lookalikes
    are rejected.

    Args:
        headers: Request headers (case-insensitive mapping).
        tenant_host: Expected hostname.
        require_header: Reject requests carrying none of the headers.

    Raises:
        OriginValidationError: On mismatch, unparsable URL, or missing header
            when require_header is set.
    """
    raw = headers.get("referer") or headers.get("referrer") or headers.get("origin")
    if not raw:
        if require_header:
            raise OriginValidationError("Redirect request has no Referer or Origin header")
        return

    try:
        hostname = urlsplit(raw).hostname
    except ValueError as e:
        raise OriginValidationError(f"Invalid Referer/Origin header: {raw!r}") from e

    if not hostname or hostname.lower() != tenant_host.lower():
        raise OriginValidationError(f"Redirect origin {hostname or raw!r} does not match tenant host {tenant_host!r}")


class RedirectListener:
    """One-shot loopback listener for the authorization code redirect."""

    def __init__(
        self,
        *,
        tenant_host: str,
        expected_state: str,
        port: int,
        require_origin_header: bool = False,
        host: str = REDIRECT_LISTENER_HOST,
    ) -> None:
        self._tenant_host = tenant_host
        self._expected_state = expected_state
        self._requested_port = port
        self._require_origin_header = require_origin_header
        self._host = host

        self._sock: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._result: asyncio.Future[str] | None = None
        self._stopped = False

        self.app = Starlette(routes=[Route("/{path:path}", self._handle_redirect, methods=["GET"])])

    @property
    def port(self) -> int:
        """Bound port (the requested one, or the OS-assigned one for port 0)."""
        if self._sock is not None:
            return self._sock.getsockname()[1]
        return self._requested_port

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}"

    def _result_future(self) -> asyncio.Future[str]:
        if self._result is None:
            self._result = asyncio.get_running_loop().create_future()
        return self._result

    async def start(self) -> None:
        """Bind the socket and begin serving.

        Raises:
            RedirectListenerError: If the port cannot be bound.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self._host, self._requested_port))
            sock.listen(REDIRECT_LISTENER_BACKLOG)
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                message = (
                    f"Port {self._requested_port} is already in use. "
                    "Stop the process using it or set AIC_MCP_REDIRECT_PORT."
                )
            else:
                message = f"Failed to bind redirect listener on {self._host}:{self._requested_port}: {e}"
            _logger.error(
                {
                    "event": "redirect_listener_bind_failed",
                    "message": message,
                    "port": self._requested_port,
                    "error": str(e),
                }
            )
            raise RedirectListenerError(message) from e
        sock.setblocking(False)
        self._sock = sock

        # Suppress uvicorn's own logging; stdout belongs to the MCP transport
        for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            logging.getLogger(logger_name).setLevel(logging.CRITICAL)

        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="off",
            ws="none",
            timeout_graceful_shutdown=int(REDIRECT_LISTENER_SHUTDOWN_TIMEOUT_SECONDS),
        )
        self._server = uvicorn.Server(config)
        self._result_future()
        # Uses uvicorn's _serve() to avoid installing signal handlers
        self._serve_task = asyncio.create_task(self._server._serve(sockets=[sock]))
        self._serve_task.add_done_callback(self._on_serve_done)

        _logger.info(
            {
                "event": "redirect_listener_started",
                "message": f"Waiting for authorization redirect on {self.redirect_uri}",
                "port": self.port,
            }
        )

    def _on_serve_done(self, task: asyncio.Task[None]) -> None:
        error = None if task.cancelled() else task.exception()
        future = self._result
        if future is None or future.done():
            return
        message = "Redirect listener stopped before receiving the authorization redirect"
        if error is not None:
            message = f"Redirect listener failed: {error}"
            _logger.error({"event": "redirect_listener_failed", "message": message, "error_type": type(error).__name__})
        future.set_exception(RedirectListenerError(message))

    async def wait_for_code(self) -> str:
        """Wait for the first redirect.

        Returns:
            The authorization code.

        Raises:
            OriginValidationError: Redirect came from another origin.
            StateMismatchError: state missing or not the one issued.
            AuthorizationCodeMissingError: Redirect carried no code.
            RedirectListenerError: Listener stopped serving first.
        """
        return await self._result_future()

    def _settle(self, *, code: str | None = None, error: AuthenticationError | None = None) -> None:
        future = self._result_future()
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(code or "")
        # One request per attempt; uvicorn finishes the in-flight response first
        if self._server is not None:
            self._server.should_exit = True

    async def _handle_redirect(self, request: Request) -> HTMLResponse:
        if self._result_future().done():
            return HTMLResponse(
                render_result_page(False, "This authorization request has already been handled."),
                status_code=409,
            )

        params = request.query_params
        try:
            validate_origin(request.headers, self._tenant_host, require_header=self._require_origin_header)
            state = params.get("state")
            if not state or not hmac.compare_digest(state.encode(), self._expected_state.encode()):
                raise StateMismatchError("Invalid state parameter. Possible CSRF attack.")
        except SecurityRejection as e:
            _logger.warning(
                {
                    "event": "redirect_rejected",
                    "message": str(e),
                    "failure_type": e.failure_type,
                    "path": request.url.path,
                }
            )
            self._settle(error=e)
            return HTMLResponse(render_result_page(False, str(e)), status_code=403)

        code = params.get("code")
        if not code:
            detail = params.get("error_description") or params.get("error") or "No authorization code received."
            error = AuthorizationCodeMissingError(f"Authorization failed: {detail}")
            _logger.warning(
                {
                    "event": "authorization_code_missing",
                    "message": str(error),
                    "oauth_error": params.get("error"),
                }
            )
            self._settle(error=error)
            return HTMLResponse(render_result_page(False, detail), status_code=200)

        self._settle(code=code)
        return HTMLResponse(render_result_page(True), status_code=200)

    async def stop(self) -> None:
        """Shut the listener down. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True

        # Nobody waits on the result any more; keeps the serve callback from failing it
        future = self._result
        if future is not None and not future.done():
            future.cancel()

        if self._server is not None:
            self._server.should_exit = True
        task = self._serve_task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(asyncio.shield(task), REDIRECT_LISTENER_SHUTDOWN_TIMEOUT_SECONDS + 1)
            except asyncio.TimeoutError:
                task.cancel()
                _logger.warning(
                    {
                        "event": "redirect_listener_shutdown_timeout",
                        "message": "Redirect listener did not shut down in time, cancelled",
                    }
                )
        if self._sock is not None:
            self._sock.close()

        _logger.info({"event": "redirect_listener_stopped", "message": "Redirect listener stopped"})

    async def __aenter__(self) -> "RedirectListener":
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()
