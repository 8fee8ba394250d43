"""Tests for the loopback redirect listener."""

from __future__ import annotations

import asyncio
import socket

import httpx
import pytest

from aic_mcp.auth.redirect_listener import RedirectListener, validate_origin
from aic_mcp.exceptions import (
    AuthorizationCodeMissingError,
    OriginValidationError,
    RedirectListenerError,
    StateMismatchError,
)

TENANT = "tenant.forgeblocks.com"
STATE = "expected-state-value"


def _listener(**kwargs: object) -> RedirectListener:
    params: dict[str, object] = {"tenant_host": TENANT, "expected_state": STATE, "port": 0}
    params.update(kwargs)
    return RedirectListener(**params)  # type: ignore[arg-type]


def _client(listener: RedirectListener) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=listener.app), base_url="http://localhost")


class TestValidateOrigin:
    """Tests for validate_origin."""

    def test_matching_referer_passes(self) -> None:
        """Given a Referer on the tenant host, validation passes."""
        # Act / Assert
        validate_origin({"referer": f"https://{TENANT}/am/XUI/"}, TENANT)

    def test_referrer_spelling_is_accepted(self) -> None:
        """Given the misspelled Referrer header, it is used."""
        # Act / Assert
        validate_origin({"referrer": f"https://{TENANT}/login"}, TENANT)

    def test_origin_used_when_no_referer(self) -> None:
        """Given only Origin, it is checked."""
        # Act / Assert
        with pytest.raises(OriginValidationError):
            validate_origin({"origin": "https://attacker.example"}, TENANT)

    def test_referer_takes_precedence_over_origin(self) -> None:
        """Given a mismatching Referer and a matching Origin, Referer decides."""
        # Act / Assert
        with pytest.raises(OriginValidationError):
            validate_origin({"referer": "https://attacker.example/", "origin": f"https://{TENANT}"}, TENANT)

    @pytest.mark.parametrize(
        "header",
        [
            f"https://evil.{TENANT}/",
            f"https://{TENANT}.attacker.example/",
            f"https://evil.{TENANT}.attacker.com/",
            "https://forgeblocks.com/",
        ],
    )
    def test_lookalike_hosts_rejected(self, header: str) -> None:
        """Given subdomain or suffix lookalikes, validation fails."""
        # Act / Assert
        with pytest.raises(OriginValidationError):
            validate_origin({"referer": header}, TENANT)

    def test_missing_headers_allowed_by_default(self) -> None:
        """Given no Referer/Origin, validation passes unless required."""
        # Act / Assert
        validate_origin({}, TENANT)

    def test_missing_headers_rejected_when_required(self) -> None:
        """Given require_header, a request without headers fails."""
        # Act / Assert
        with pytest.raises(OriginValidationError, match="no Referer or Origin"):
            validate_origin({}, TENANT, require_header=True)


class TestRedirectHandling:
    """Tests for redirect request handling through the ASGI app."""

    @pytest.mark.asyncio
    async def test_valid_redirect_yields_code(self) -> None:
        """Given matching state and a code, the success page is served and the code returned."""
        # Arrange
        listener = _listener()

        # Act
        async with _client(listener) as client:
            response = await client.get(
                "/", params={"code": "auth-code", "state": STATE}, headers={"referer": f"https://{TENANT}/"}
            )
        code = await listener.wait_for_code()

        # Assert
        assert response.status_code == 200
        assert "Authorization Successful" in response.text
        assert code == "auth-code"

    @pytest.mark.asyncio
    async def test_any_path_is_handled(self) -> None:
        """Given a redirect on a non-root path, it is handled the same way."""
        # Arrange
        listener = _listener()

        # Act
        async with _client(listener) as client:
            response = await client.get("/callback", params={"code": "c", "state": STATE})

        # Assert
        assert response.status_code == 200
        assert await listener.wait_for_code() == "c"

    @pytest.mark.asyncio
    async def test_state_mismatch_is_403(self) -> None:
        """Given a wrong state, the response is 403 and the wait fails with StateMismatchError."""
        # Arrange
        listener = _listener()

        # Act
        async with _client(listener) as client:
            response = await client.get("/", params={"code": "auth-code", "state": "forged"})

        # Assert
        assert response.status_code == 403
        with pytest.raises(StateMismatchError, match="CSRF"):
            await listener.wait_for_code()

    @pytest.mark.asyncio
    async def test_missing_state_is_403(self) -> None:
        """Given no state parameter, the redirect is rejected."""
        # Arrange
        listener = _listener()

        # Act
        async with _client(listener) as client:
            response = await client.get("/", params={"code": "auth-code"})

        # Assert
        assert response.status_code == 403
        with pytest.raises(StateMismatchError):
            await listener.wait_for_code()

    @pytest.mark.asyncio
    async def test_origin_mismatch_is_403(self) -> None:
        """Given a Referer from another host, the redirect is rejected before state is checked."""
        # Arrange
        listener = _listener()

        # Act
        async with _client(listener) as client:
            response = await client.get(
                "/", params={"code": "c", "state": STATE}, headers={"referer": "https://attacker.example/"}
            )

        # Assert
        assert response.status_code == 403
        with pytest.raises(OriginValidationError):
            await listener.wait_for_code()

    @pytest.mark.asyncio
    async def test_missing_code_serves_failure_page(self) -> None:
        """Given a provider error redirect, a 200 failure page is served and the wait fails."""
        # Arrange
        listener = _listener()

        # Act
        async with _client(listener) as client:
            response = await client.get(
                "/", params={"state": STATE, "error": "access_denied", "error_description": "User said <no>"}
            )

        # Assert
        assert response.status_code == 200
        assert "Authorization Failed" in response.text
        assert "User said &lt;no&gt;" in response.text
        with pytest.raises(AuthorizationCodeMissingError, match="User said <no>"):
            await listener.wait_for_code()

    @pytest.mark.asyncio
    async def test_second_request_is_409(self) -> None:
        """Given the attempt was already settled, later requests get 409 and do not change the result."""
        # Arrange
        listener = _listener()

        # Act
        async with _client(listener) as client:
            await client.get("/", params={"code": "first", "state": STATE})
            second = await client.get("/", params={"code": "second", "state": STATE})

        # Assert
        assert second.status_code == 409
        assert await listener.wait_for_code() == "first"


class TestListenerLifecycle:
    """Tests for binding, serving and shutdown over a real socket."""

    @pytest.mark.asyncio
    async def test_serves_on_ephemeral_port(self) -> None:
        """Given port 0, the listener binds a free port and receives the redirect."""
        # Arrange
        listener = _listener()
        await listener.start()

        try:
            # Act
            assert listener.port != 0
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"http://127.0.0.1:{listener.port}/", params={"code": "live-code", "state": STATE}
                )
            code = await asyncio.wait_for(listener.wait_for_code(), 5)
        finally:
            await listener.stop()

        # Assert
        assert response.status_code == 200
        assert code == "live-code"
        assert listener.redirect_uri == f"http://localhost:{listener.port}"

    @pytest.mark.asyncio
    async def test_port_in_use_raises(self) -> None:
        """Given an occupied port, start fails with RedirectListenerError naming the override."""
        # Arrange
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]

        try:
            # Act / Assert
            with pytest.raises(RedirectListenerError, match="AIC_MCP_REDIRECT_PORT"):
                await _listener(port=port).start()
        finally:
            blocker.close()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self) -> None:
        """Given a started listener, stopping twice is safe."""
        # Arrange
        listener = _listener()
        await listener.start()

        # Act
        await listener.stop()
        await listener.stop()

        # Assert
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
            probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            probe.bind(("127.0.0.1", listener.port))
