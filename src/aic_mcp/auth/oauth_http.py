"""HTTP helpers shared by the OAuth flows.

All OAuth endpoints take application/x-www-form-urlencoded bodies and return
JSON. Failures are logged once here (endpoint, status, truncated body) and
raised as TransportError so callers don't repeat the bookkeeping.
"""

from __future__ import annotations

__all__ = [
    "create_oauth_client",
    "ensure_success",
    "post_form",
    "read_json",
]

from typing import Any

import httpx

from aic_mcp.constants import OAUTH_CLIENT_TIMEOUT_SECONDS
from aic_mcp.exceptions import TransportError
from aic_mcp.telemetry.system.system_logger import get_system_logger
from aic_mcp.utils.logging.logging_helpers import truncate_for_logging

_logger = get_system_logger()


def create_oauth_client() -> httpx.AsyncClient:
    """Create the HTTP client used for all OAuth endpoint calls."""
    return httpx.AsyncClient(
        timeout=OAUTH_CLIENT_TIMEOUT_SECONDS,
        headers={"Accept": "application/json"},
    )


async def post_form(
    client: httpx.AsyncClient,
    url: str,
    data: dict[str, str],
    *,
    operation: str,
) -> httpx.Response:
    """POST a form body to an OAuth endpoint.

    Non-2xx responses are returned as-is (the device flow inspects them);
    use ensure_success() when any error status is fatal.

    Raises:
        TransportError: On network-level failure (no response).
    """
    try:
        return await client.post(url, data=data)
    except httpx.HTTPError as e:
        _logger.error(
            {
                "event": "oauth_request_failed",
                "message": f"{operation} request failed: {e}",
                "operation": operation,
                "endpoint": url,
                "error_type": type(e).__name__,
            }
        )
        raise TransportError(f"{operation} request failed: {e}", endpoint=url) from e


def ensure_success(
    response: httpx.Response,
    *,
    operation: str,
    error_cls: type[TransportError] = TransportError,
) -> None:
    """Raise if the response is not 2xx.

    Args:
        response: Response from post_form().
        operation: Human-readable operation name for messages and logs.
        error_cls: TransportError subclass to raise.

    Raises:
        TransportError: (or error_cls) carrying status and body.
    """
    if response.is_success:
        return

    url = str(response.request.url)
    body = response.text
    _logger.error(
        {
            "event": "oauth_endpoint_error",
            "message": f"{operation} failed with HTTP {response.status_code}",
            "operation": operation,
            "endpoint": url,
            "status": response.status_code,
            "body": truncate_for_logging(body),
        }
    )
    raise error_cls(
        f"{operation} failed: {response.status_code} {response.reason_phrase} - {body}",
        endpoint=url,
        status_code=response.status_code,
        body=body,
    )


def read_json(response: httpx.Response, *, operation: str) -> Any:
    """Decode a JSON response body.

    Raises:
        TransportError: If the body is not valid JSON.
    """
    try:
        return response.json()
    except ValueError as e:
        url = str(response.request.url)
        body = response.text
        _logger.error(
            {
                "event": "oauth_invalid_json",
                "message": f"{operation} returned a non-JSON body",
                "operation": operation,
                "endpoint": url,
                "status": response.status_code,
                "body": truncate_for_logging(body),
            }
        )
        raise TransportError(
            f"{operation} returned invalid JSON (HTTP {response.status_code})",
            endpoint=url,
            status_code=response.status_code,
            body=body,
        ) from e
