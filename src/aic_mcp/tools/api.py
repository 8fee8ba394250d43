"""Authenticated requests to the tenant REST API.

Every tool goes through AICApiClient.request(): it asks the AuthService for a
token narrowed to the tool's scopes, calls the endpoint and turns non-2xx
responses into TenantApiError. Tools render results with format_success()
and failures with format_failure().
"""

from __future__ import annotations

__all__ = [
    "AICApiClient",
    "ApiResponse",
    "TOOL_ERRORS",
    "format_failure",
    "format_success",
    "validate_path_segment",
]

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from aic_mcp.constants import API_CLIENT_TIMEOUT_SECONDS, TRANSACTION_ID_HEADER
from aic_mcp.exceptions import AICMCPError, InvalidInputError, TenantApiError
from aic_mcp.telemetry.system.system_logger import get_system_logger
from aic_mcp.utils.logging.logging_helpers import truncate_for_logging

if TYPE_CHECKING:
    from aic_mcp.auth.service import AuthService
    from aic_mcp.config import AICConfig

_logger = get_system_logger()

# Parent directory references, path separators and their URL-encoded forms
_UNSAFE_SEGMENT = re.compile(r"\.\.|[/\\]|%2e|%2f|%5c", re.IGNORECASE)


@dataclass(frozen=True)
class ApiResponse:
    """Decoded tenant API response.

    Attributes:
        data: Parsed JSON body (None for empty responses, text if not JSON).
        status_code: HTTP status.
        transaction_id: x-forgerock-transactionid header, if present.
    """

    data: Any
    status_code: int
    transaction_id: str | None = None


def _with_transaction_id(text: str, transaction_id: str | None) -> str:
    if transaction_id:
        return f"{text}\n\nTransaction ID: {transaction_id}"
    return text


def format_success(data: Any, transaction_id: str | None = None) -> str:
    """Render a result as pretty JSON with the transaction ID trailer."""
    text = data if isinstance(data, str) else json.dumps(data, indent=2)
    return _with_transaction_id(text, transaction_id)


def format_failure(operation: str, error: Exception) -> str:
    """Render a tool failure as text for the MCP client.

    Args:
        operation: What the tool was doing (e.g. "Failed to fetch log sources").
        error: The caught exception.
    """
    _logger.warning(
        {
            "event": "tool_call_failed",
            "message": f"{operation}: {error}",
            "failure_type": getattr(error, "failure_type", "http_error"),
            "error_type": type(error).__name__,
        }
    )
    return f"{operation}: {error}"


def validate_path_segment(value: str, name: str = "Object ID") -> str:
    """Reject values that could escape their URL path segment.

    Raises:
        InvalidInputError: If the value is blank or contains traversal characters.
    """
    if not value or not value.strip():
        raise InvalidInputError(f"{name} cannot be empty or whitespace")
    if _UNSAFE_SEGMENT.search(value):
        raise InvalidInputError(
            f"Invalid {name.lower()}: must not contain path traversal characters "
            "(/, \\, ..) or URL-encoded equivalents"
        )
    return value


class AICApiClient:
    """Calls the tenant REST API with per-tool scoped tokens.

    Usage:
        api = AICApiClient(config, auth_service)
        result = await api.request("GET", "/monitoring/logs/sources", ["fr:idc:monitoring:*"])
    """

    def __init__(
        self,
        config: "AICConfig",
        auth: "AuthService",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._auth = auth
        self._client = http_client or httpx.AsyncClient(timeout=API_CLIENT_TIMEOUT_SECONDS)
        self._owns_client = http_client is None

    @property
    def auth(self) -> "AuthService":
        return self._auth

    async def aclose(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        scopes: Sequence[str],
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        json_body: Any = None,
    ) -> ApiResponse:
        """Make an authenticated request.

        Args:
            method: HTTP method.
            path: Path on the tenant (starting with "/").
            scopes: Scopes the calling tool needs.
            params: Query parameters.
            headers: Extra headers (e.g. accept-api-version).
            json_body: JSON request body.

        Returns:
            ApiResponse with the decoded body.

        Raises:
            AICMCPError: Authentication failed (see AuthService.get_token).
            TenantApiError: Endpoint returned non-2xx.
            httpx.HTTPError: Network failure.
        """
        token = await self._auth.get_token(scopes)
        url = f"{self._config.base_url}{path}"

        request_headers = {"Authorization": f"Bearer {token}"}
        if headers:
            request_headers.update(headers)

        response = await self._client.request(
            method,
            url,
            params=params,
            headers=request_headers,
            json=json_body,
        )
        transaction_id = response.headers.get(TRANSACTION_ID_HEADER)

        if not response.is_success:
            body = response.text
            _logger.warning(
                {
                    "event": "tenant_api_error",
                    "message": f"{method} {path} failed with HTTP {response.status_code}",
                    "endpoint": url,
                    "status": response.status_code,
                    "body": truncate_for_logging(body),
                    "transaction_id": transaction_id,
                }
            )
            raise TenantApiError(
                _with_transaction_id(f"{response.status_code} {response.reason_phrase} - {body}", transaction_id),
                status_code=response.status_code,
                body=body,
                transaction_id=transaction_id,
            )

        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            data = None
        else:
            try:
                data = response.json()
            except ValueError:
                data = response.text

        return ApiResponse(data=data, status_code=response.status_code, transaction_id=transaction_id)


# Errors a tool reports as text instead of failing the MCP call
TOOL_ERRORS: tuple[type[Exception], ...] = (AICMCPError, httpx.HTTPError)
