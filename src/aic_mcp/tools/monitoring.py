"""Monitoring log tools."""

from __future__ import annotations

__all__ = [
    "SCOPES",
    "get_log_sources",
    "query_logs_by_transaction_id",
    "register",
]

from typing import TYPE_CHECKING, Annotated

from mcp.types import ToolAnnotations
from pydantic import Field

from aic_mcp.tools.api import TOOL_ERRORS, AICApiClient, format_failure, format_success

if TYPE_CHECKING:
    from fastmcp import FastMCP

SCOPES: tuple[str, ...] = ("fr:idc:monitoring:*",)

# Sources that together cover a request's journey through AM and IDM
TRANSACTION_LOG_SOURCES = "am-everything,idm-everything"


async def get_log_sources(api: AICApiClient) -> str:
    """List the tenant's log sources."""
    try:
        result = await api.request("GET", "/monitoring/logs/sources", SCOPES)
    except TOOL_ERRORS as e:
        return format_failure("Failed to fetch log sources", e)
    return format_success(result.data, result.transaction_id)


async def query_logs_by_transaction_id(api: AICApiClient, transaction_id: str) -> str:
    """Fetch AM and IDM log entries for one transaction ID."""
    try:
        result = await api.request(
            "GET",
            "/monitoring/logs",
            SCOPES,
            params={"source": TRANSACTION_LOG_SOURCES, "transactionId": transaction_id},
        )
    except TOOL_ERRORS as e:
        return format_failure("Failed to query logs by transaction ID", e)
    return format_success(result.data, result.transaction_id)


def register(mcp: "FastMCP", api: AICApiClient) -> None:
    """Register the monitoring tools on the server."""
    read_only = ToolAnnotations(readOnlyHint=True, openWorldHint=True)

    @mcp.tool(
        name="getLogSources",
        title="Get Log Sources",
        description="Retrieve the list of available log sources in PingOne AIC",
        annotations=read_only,
    )
    async def _get_log_sources() -> str:
        return await get_log_sources(api)

    @mcp.tool(
        name="queryLogsByTransactionId",
        title="Query Logs by Transaction ID",
        description="Query am-everything and idm-everything logs in PingOne AIC by transaction ID",
        annotations=read_only,
    )
    async def _query_logs_by_transaction_id(
        transactionId: Annotated[str, Field(min_length=1, description="The transaction ID to query the logs for.")],
    ) -> str:
        return await query_logs_by_transaction_id(api, transactionId)
