"""Authentication journey (AM tree) tools."""

from __future__ import annotations

__all__ = [
    "SCOPES",
    "list_journeys",
    "register",
]

import asyncio
from typing import TYPE_CHECKING, Annotated, Literal

from mcp.types import ToolAnnotations
from pydantic import Field

from aic_mcp.tools.api import TOOL_ERRORS, AICApiClient, format_failure, format_success

if TYPE_CHECKING:
    from fastmcp import FastMCP

SCOPES: tuple[str, ...] = ("fr:am:*",)

Realm = Literal["alpha", "bravo"]

AM_API_HEADERS = {"accept-api-version": "protocol=2.1,resource=1.0"}
AUTH_CONFIG_HEADERS = {"accept-api-version": "protocol=1.0,resource=1.0"}

JOURNEY_FIELDS = "_id,description,identityResource,uiConfig,nodes,enabled,mustRun,maximumSessionTime,maximumIdleTime"


def _realm_path(realm: str, path: str) -> str:
    return f"/am/json/{realm}/{path}"


async def list_journeys(api: AICApiClient, realm: str) -> str:
    """List a realm's journeys along with its default journey."""
    try:
        journeys, auth_config = await asyncio.gather(
            api.request(
                "GET",
                _realm_path(realm, "realm-config/authentication/authenticationtrees/trees"),
                SCOPES,
                params={"_queryFilter": "true", "_pageSize": "-1", "_fields": JOURNEY_FIELDS},
                headers=AM_API_HEADERS,
            ),
            api.request(
                "GET",
                _realm_path(realm, "realm-config/authentication"),
                SCOPES,
                headers=AUTH_CONFIG_HEADERS,
            ),
        )
    except TOOL_ERRORS as e:
        return format_failure(f'Failed to list journeys in realm "{realm}"', e)

    result = dict(journeys.data) if isinstance(journeys.data, dict) else {"result": journeys.data}
    core = auth_config.data.get("core") if isinstance(auth_config.data, dict) else None
    result["defaultJourney"] = core.get("orgConfig") if isinstance(core, dict) else None
    return format_success(result, journeys.transaction_id)


def register(mcp: "FastMCP", api: AICApiClient) -> None:
    """Register the journey tools on the server."""

    @mcp.tool(
        name="listJourneys",
        title="List AM Journeys",
        description=(
            "Retrieve all authentication journeys (trees) for a specific realm in PingOne AIC. "
            "Returns journey metadata including ID, description, and the default journey for the realm."
        ),
        annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True),
    )
    async def _list_journeys(realm: Annotated[Realm, Field(description="The realm to query")]) -> str:
        return await list_journeys(api, realm)
