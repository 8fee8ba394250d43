"""Channel for asking the MCP client's user to act during the device flow.

In containerized mode there is no local browser. The verification URL is
shown to the user through a URL-mode MCP elicitation, and the flow only starts
polling once the user answers "accept". The elicitation id sent with the prompt
is echoed in the notifications/elicitation/complete notice after login.
"""

from __future__ import annotations

__all__ = [
    "ElicitationChannel",
    "ElicitationOutcome",
    "FastMCPElicitationChannel",
    "build_device_prompt",
]

import uuid
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from aic_mcp.exceptions import ConfigurationError
from aic_mcp.telemetry.system.system_logger import get_system_logger

_logger = get_system_logger()


def build_device_prompt(verification_uri: str) -> str:
    """Message shown to the user for device authorization."""
    return (
        "Please authenticate with PingOne AIC by opening this URL in your browser:\n\n"
        f"{verification_uri}\n\n"
        "Please respond after you complete authentication."
    )


@dataclass(frozen=True)
class ElicitationOutcome:
    """User's answer to an elicitation.

    Attributes:
        action: "accept", "decline" or "cancel".
        elicitation_id: Correlates the completion notification with the prompt.
    """

    action: str
    elicitation_id: str

    @property
    def accepted(self) -> bool:
        return self.action == "accept"


@runtime_checkable
class ElicitationChannel(Protocol):
    """Presents a user action request and reports its completion."""

    async def request_user_action(self, message: str, verification_uri: str) -> ElicitationOutcome:
        """Ask the user to act and wait for their answer."""
        ...

    async def notify_complete(self, elicitation_id: str) -> None:
        """Tell the client the requested action has been completed."""
        ...


class FastMCPElicitationChannel:
    """Elicitation through the FastMCP request context of the running tool call.

    The context is resolved per call, so the prompt goes to the client whose
    tool call triggered authentication. Both messages are tied to that call
    through related_request_id.
    """

    def _context(self):  # type: ignore[no-untyped-def]
        from fastmcp.server.dependencies import get_context

        try:
            return get_context()
        except RuntimeError as e:
            raise ConfigurationError(
                "Device authorization needs an active MCP request to prompt the user"
            ) from e

    async def request_user_action(self, message: str, verification_uri: str) -> ElicitationOutcome:
        ctx = self._context()
        elicitation_id = str(uuid.uuid4())

        _logger.info(
            {
                "event": "elicitation_requested",
                "message": "Requesting user authentication via device code flow",
                "elicitation_id": elicitation_id,
            }
        )
        result = await ctx.session.elicit_url(
            message, verification_uri, elicitation_id, related_request_id=ctx.request_id
        )
        return ElicitationOutcome(action=result.action, elicitation_id=elicitation_id)

    async def notify_complete(self, elicitation_id: str) -> None:
        ctx = self._context()
        await ctx.session.send_elicit_complete(elicitation_id, related_request_id=ctx.request_id)
