"""Managed object (IDM) tools for users, roles, groups and organizations."""

from __future__ import annotations

__all__ = [
    "BASE_OBJECT_TYPES",
    "REALMS",
    "SCOPES",
    "SUPPORTED_OBJECT_TYPES",
    "ObjectType",
    "build_query_filter",
    "get_base_type",
    "get_managed_object",
    "query_managed_objects",
    "register",
]

from typing import TYPE_CHECKING, Annotated, Literal

from mcp.types import ToolAnnotations
from pydantic import Field

from aic_mcp.exceptions import InvalidInputError
from aic_mcp.tools.api import TOOL_ERRORS, AICApiClient, format_failure, format_success, validate_path_segment

if TYPE_CHECKING:
    from fastmcp import FastMCP

SCOPES: tuple[str, ...] = ("fr:idm:*",)

REALMS: tuple[str, ...] = ("alpha", "bravo")
BASE_OBJECT_TYPES: tuple[str, ...] = ("user", "role", "group", "organization")
SUPPORTED_OBJECT_TYPES: tuple[str, ...] = tuple(
    f"{realm}_{base}" for base in BASE_OBJECT_TYPES for realm in REALMS
)

ObjectType = Literal[
    "alpha_user",
    "bravo_user",
    "alpha_role",
    "bravo_role",
    "alpha_group",
    "bravo_group",
    "alpha_organization",
    "bravo_organization",
]

# Fields matched with "sw" (starts with); the first one is also the sort key
QUERY_FIELDS: dict[str, tuple[str, ...]] = {
    "user": ("userName", "givenName", "sn", "mail"),
    "role": ("name", "description"),
    "group": ("name", "description"),
    "organization": ("name", "description"),
}

QUERY_PAGE_SIZE = 10
MIN_QUERY_TERM_LENGTH = 3


def get_base_type(object_type: str) -> str:
    """Map a full object type such as "alpha_user" to its base type ("user").

    Raises:
        InvalidInputError: For types outside SUPPORTED_OBJECT_TYPES.
    """
    if object_type not in SUPPORTED_OBJECT_TYPES:
        raise InvalidInputError(
            f"Unsupported object type {object_type!r}; expected one of {', '.join(SUPPORTED_OBJECT_TYPES)}"
        )
    return object_type.split("_", 1)[1]


def build_query_filter(fields: tuple[str, ...], query_term: str) -> str:
    """Build `field1 sw "term" OR field2 sw "term" ...` with quotes escaped."""
    escaped = query_term.replace("\\", "\\\\").replace('"', '\\"')
    return " OR ".join(f'{field} sw "{escaped}"' for field in fields)


async def get_managed_object(api: AICApiClient, object_type: str, object_id: str) -> str:
    """Fetch one managed object by _id."""
    try:
        get_base_type(object_type)
        validate_path_segment(object_id)
        result = await api.request("GET", f"/openidm/managed/{object_type}/{object_id}", SCOPES)
    except TOOL_ERRORS as e:
        return format_failure("Failed to retrieve managed object", e)
    return format_success(result.data, result.transaction_id)


async def query_managed_objects(api: AICApiClient, object_type: str, query_term: str) -> str:
    """Search managed objects whose queryable fields start with query_term."""
    try:
        fields = QUERY_FIELDS[get_base_type(object_type)]
        if len(query_term) < MIN_QUERY_TERM_LENGTH:
            raise InvalidInputError(f"Query term must be at least {MIN_QUERY_TERM_LENGTH} characters")
        result = await api.request(
            "GET",
            f"/openidm/managed/{object_type}",
            SCOPES,
            params={
                "_queryFilter": build_query_filter(fields, query_term),
                "_pageSize": str(QUERY_PAGE_SIZE),
                "_totalPagedResultsPolicy": "EXACT",
                "_sortKeys": fields[0],
                "_fields": ",".join(fields),
            },
        )
    except TOOL_ERRORS as e:
        return format_failure(f"Failed to query {object_type}", e)
    return format_success(result.data, result.transaction_id)


def register(mcp: "FastMCP", api: AICApiClient) -> None:
    """Register the managed object tools on the server."""
    read_only = ToolAnnotations(readOnlyHint=True, openWorldHint=True)

    @mcp.tool(
        name="getManagedObject",
        title="Get Managed Object",
        description="Retrieve a managed object's complete profile by ID in PingOne AIC",
        annotations=read_only,
    )
    async def _get_managed_object(
        objectType: Annotated[ObjectType, Field(description="Managed object type")],
        objectId: Annotated[str, Field(min_length=1, description="The object's unique identifier (_id)")],
    ) -> str:
        return await get_managed_object(api, objectType, objectId)

    @mcp.tool(
        name="queryManagedObjects",
        title="Query Managed Objects",
        description="Query managed objects in PingOne AIC by search term",
        annotations=read_only,
    )
    async def _query_managed_objects(
        objectType: Annotated[ObjectType, Field(description="Managed object type")],
        queryTerm: Annotated[
            str,
            Field(
                min_length=MIN_QUERY_TERM_LENGTH,
                description="Query term to match against the object's queryable fields (minimum 3 characters)",
            ),
        ],
    ) -> str:
        return await query_managed_objects(api, objectType, queryTerm)
