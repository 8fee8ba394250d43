"""Environment secrets and variables (ESV) tools."""

from __future__ import annotations

__all__ = [
    "SCOPES",
    "query_esvs",
    "register",
]

from typing import TYPE_CHECKING, Annotated, Literal

from mcp.types import ToolAnnotations
from pydantic import Field

from aic_mcp.tools.api import TOOL_ERRORS, AICApiClient, format_failure, format_success

if TYPE_CHECKING:
    from fastmcp import FastMCP

SCOPES: tuple[str, ...] = ("fr:idc:esv:read",)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

# The ESV API only serves resource version 2.0 for queries
ESV_API_HEADERS = {"accept-api-version": "resource=2.0"}

EsvType = Literal["variable", "secret"]


async def query_esvs(
    api: AICApiClient,
    esv_type: str,
    query_term: str | None = None,
    page_size: int | None = None,
    paged_results_cookie: str | None = None,
    sort_keys: str | None = None,
) -> str:
    """Query variables or secrets, optionally filtered by an ID substring."""
    endpoint = "variables" if esv_type == "variable" else "secrets"

    params: dict[str, str] = {}
    if query_term:
        escaped = query_term.replace('"', '\\"')
        params["_queryFilter"] = f'/_id co "{escaped}"'
    else:
        params["_queryFilter"] = "true"
    params["_pageSize"] = str(min(page_size or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))
    if paged_results_cookie:
        params["_pagedResultsCookie"] = paged_results_cookie
    if sort_keys:
        params["_sortKeys"] = sort_keys

    try:
        result = await api.request("GET", f"/environment/{endpoint}", SCOPES, params=params, headers=ESV_API_HEADERS)
    except TOOL_ERRORS as e:
        return format_failure(f"Failed to query environment {esv_type}s", e)
    return format_success(result.data, result.transaction_id)


def register(mcp: "FastMCP", api: AICApiClient) -> None:
    """Register the ESV tools on the server."""

    @mcp.tool(
        name="queryESVs",
        title="Query Environment Secrets and Variables (ESVs)",
        description="Query environment secrets or variables (ESVs) in PingOne AIC by ID",
        annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True),
    )
    async def _query_esvs(
        type: Annotated[EsvType, Field(description="Type of ESV to query")],
        queryTerm: Annotated[
            str | None,
            Field(
                max_length=100,
                description="Search term to filter by ID. If omitted, returns all ESVs up to pageSize",
            ),
        ] = None,
        pageSize: Annotated[
            int | None,
            Field(ge=1, le=MAX_PAGE_SIZE, description="Number of results to return per page (default: 50)"),
        ] = None,
        pagedResultsCookie: Annotated[
            str | None,
            Field(description="Pagination cookie from previous response to retrieve next page"),
        ] = None,
        sortKeys: Annotated[
            str | None,
            Field(
                max_length=200,
                description=(
                    'Comma-separated field names to sort by. Prefix with "-" for descending. '
                    'Example: "_id,-lastChangeDate"'
                ),
            ),
        ] = None,
    ) -> str:
        return await query_esvs(api, type, queryTerm, pageSize, pagedResultsCookie, sortKeys)
