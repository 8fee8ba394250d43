"""Tests for the FastMCP elicitation channel."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from aic_mcp.auth.elicitation import FastMCPElicitationChannel, build_device_prompt
from aic_mcp.exceptions import ConfigurationError

DEVICE_URI = "https://tenant.forgeblocks.com/am/oauth2/device/user?user_code=ABCD"


class SessionRecorder:
    """Stands in for the MCP server session of the current request."""

    def __init__(self, action: str = "accept") -> None:
        self.action = action
        self.prompts: list[dict[str, Any]] = []
        self.completions: list[dict[str, Any]] = []

    async def elicit_url(
        self, message: str, url: str, elicitation_id: str, related_request_id: Any = None
    ) -> SimpleNamespace:
        self.prompts.append(
            {"message": message, "url": url, "elicitation_id": elicitation_id, "request_id": related_request_id}
        )
        return SimpleNamespace(action=self.action)

    async def send_elicit_complete(self, elicitation_id: str, related_request_id: Any = None) -> None:
        self.completions.append({"elicitation_id": elicitation_id, "request_id": related_request_id})


@pytest.fixture
def session(monkeypatch: pytest.MonkeyPatch) -> SessionRecorder:
    recorder = SessionRecorder()
    ctx = SimpleNamespace(session=recorder, request_id="req-7")
    monkeypatch.setattr("fastmcp.server.dependencies.get_context", lambda: ctx)
    return recorder


class TestFastMCPElicitationChannel:
    """Tests for prompting and completion through the request session."""

    @pytest.mark.asyncio
    async def test_prompt_sends_url_and_id(self, session: SessionRecorder) -> None:
        """Given a device prompt, a URL elicitation carrying the returned id is sent for the current request."""
        # Arrange
        channel = FastMCPElicitationChannel()
        message = build_device_prompt(DEVICE_URI)

        # Act
        outcome = await channel.request_user_action(message, DEVICE_URI)

        # Assert
        assert outcome.accepted
        assert session.prompts == [
            {"message": message, "url": DEVICE_URI, "elicitation_id": outcome.elicitation_id, "request_id": "req-7"}
        ]

    @pytest.mark.asyncio
    async def test_completion_echoes_prompt_id(self, session: SessionRecorder) -> None:
        """Given a finished login, the completion notice carries the id the client received."""
        # Arrange
        channel = FastMCPElicitationChannel()
        outcome = await channel.request_user_action("open it", DEVICE_URI)

        # Act
        await channel.notify_complete(outcome.elicitation_id)

        # Assert
        assert session.completions == [{"elicitation_id": outcome.elicitation_id, "request_id": "req-7"}]
        assert session.prompts[0]["elicitation_id"] == outcome.elicitation_id

    @pytest.mark.asyncio
    async def test_declined_prompt(self, session: SessionRecorder) -> None:
        """Given the user declines, the outcome is not accepted."""
        # Arrange
        session.action = "decline"

        # Act
        outcome = await FastMCPElicitationChannel().request_user_action("open it", DEVICE_URI)

        # Assert
        assert not outcome.accepted
        assert outcome.action == "decline"

    @pytest.mark.asyncio
    async def test_no_active_request_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Given no MCP request in progress, ConfigurationError is raised."""

        # Arrange
        def no_context() -> None:
            raise RuntimeError("No active context found.")

        monkeypatch.setattr("fastmcp.server.dependencies.get_context", no_context)

        # Act / Assert
        with pytest.raises(ConfigurationError, match="active MCP request"):
            await FastMCPElicitationChannel().request_user_action("open it", DEVICE_URI)
