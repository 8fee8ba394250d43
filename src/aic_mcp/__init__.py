"""aic-mcp: MCP server for PingOne Advanced Identity Cloud.

Exposes tenant administration tools (logs, managed objects, ESVs, journeys)
to MCP clients. Every tool call is authorized with a short-lived token
obtained through the AuthService in aic_mcp.auth.
"""

__version__ = "0.1.0"
