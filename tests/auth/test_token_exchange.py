"""Tests for RFC 8693 token exchange."""

from __future__ import annotations

from collections.abc import Callable
from urllib.parse import parse_qs

import httpx
import pytest

from aic_mcp.auth.token_exchange import TokenExchangeClient
from aic_mcp.config import AICConfig
from aic_mcp.exceptions import PrimaryTokenRejectedError, TransportError

MockHttp = Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]

TOKEN_TYPE = "urn:ietf:params:oauth:token-type:access_token"


class TestTokenExchange:
    """Tests for TokenExchangeClient.exchange."""

    @pytest.mark.asyncio
    async def test_sends_exchange_form(self, aic_config: AICConfig, mock_http: MockHttp) -> None:
        """Given a primary token, the exchange request uses the token-exchange grant and exchange client."""
        # Arrange
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"access_token": "scoped-token", "expires_in": 900})

        client = TokenExchangeClient(aic_config, mock_http(handler))

        # Act
        token = await client.exchange("primary-token", ["fr:idm:*"])

        # Assert
        assert token == "scoped-token"
        request = captured[0]
        form = parse_qs(request.content.decode())
        assert str(request.url) == aic_config.token_url
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert form == {
            "grant_type": ["urn:ietf:params:oauth:grant-type:token-exchange"],
            "subject_token": ["primary-token"],
            "subject_token_type": [TOKEN_TYPE],
            "requested_token_type": [TOKEN_TYPE],
            "scope": ["fr:idm:*"],
            "client_id": [aic_config.exchange_client_id],
        }

    @pytest.mark.asyncio
    async def test_multiple_scopes_space_separated(self, aic_config: AICConfig, mock_http: MockHttp) -> None:
        """Given several scopes, they are sent space-separated."""
        # Arrange
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"access_token": "t"})

        # Act
        await TokenExchangeClient(aic_config, mock_http(handler)).exchange("p", ["a", "b"])

        # Assert
        assert parse_qs(captured[0].content.decode())["scope"] == ["a b"]

    @pytest.mark.asyncio
    async def test_401_raises_primary_token_rejected(self, aic_config: AICConfig, mock_http: MockHttp) -> None:
        """Given a 401, PrimaryTokenRejectedError is raised."""
        # Arrange
        client = TokenExchangeClient(
            aic_config, mock_http(lambda r: httpx.Response(401, json={"error": "invalid_token"}))
        )

        # Act
        with pytest.raises(PrimaryTokenRejectedError) as exc_info:
            await client.exchange("primary-token", ["fr:idm:*"])

        # Assert
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_other_failure_raises_transport_error(self, aic_config: AICConfig, mock_http: MockHttp) -> None:
        """Given a 400, TransportError (not the rejection subtype) carries status and body."""
        # Arrange
        client = TokenExchangeClient(
            aic_config, mock_http(lambda r: httpx.Response(400, text='{"error":"invalid_scope"}'))
        )

        # Act
        with pytest.raises(TransportError) as exc_info:
            await client.exchange("primary-token", ["fr:unknown"])

        # Assert
        assert not isinstance(exc_info.value, PrimaryTokenRejectedError)
        assert exc_info.value.status_code == 400
        assert "invalid_scope" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_failure_raises_transport_error(self, aic_config: AICConfig, mock_http: MockHttp) -> None:
        """Given a connection error, TransportError without status is raised."""

        # Arrange
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = TokenExchangeClient(aic_config, mock_http(handler))

        # Act
        with pytest.raises(TransportError) as exc_info:
            await client.exchange("primary-token", ["fr:idm:*"])

        # Assert
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_missing_access_token_raises(self, aic_config: AICConfig, mock_http: MockHttp) -> None:
        """Given a 200 without access_token, TransportError is raised."""
        # Arrange
        client = TokenExchangeClient(aic_config, mock_http(lambda r: httpx.Response(200, json={})))

        # Act / Assert
        with pytest.raises(TransportError):
            await client.exchange("primary-token", ["fr:idm:*"])
