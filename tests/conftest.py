"""Shared fixtures for aic-mcp tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from aic_mcp.auth.token_storage import TokenRecord, TokenStore, now_ms
from aic_mcp.config import AICConfig
from aic_mcp.exceptions import TokenStorageError

TENANT_HOST = "tenant.forgeblocks.com"


class InMemoryStorage(TokenStore):
    """TokenStore kept in a dict, with switchable failures."""

    backend_name = "memory"

    def __init__(self, record: TokenRecord | None = None) -> None:
        self.record = record
        self.fail_load = False
        self.fail_save = False
        self.save_calls = 0
        self.erase_calls = 0

    def load(self) -> TokenRecord | None:
        if self.fail_load:
            raise TokenStorageError("Failed to access keychain: locked")
        return self.record

    def save(self, record: TokenRecord) -> None:
        self.save_calls += 1
        if self.fail_save:
            raise TokenStorageError("Failed to save token to keychain: denied", record=record)
        self.record = record

    def erase(self) -> None:
        self.erase_calls += 1
        self.record = None

    def exists(self) -> bool:
        return self.record is not None

    def describe(self) -> dict[str, str]:
        return {"backend": self.backend_name}


def make_record(
    access_token: str = "primary-token",
    *,
    expires_in_seconds: int = 3600,
    tenant_host: str = TENANT_HOST,
) -> TokenRecord:
    return TokenRecord(
        access_token=access_token,
        expires_at=now_ms() + expires_in_seconds * 1000,
        tenant_host=tenant_host,
    )


@pytest.fixture
def aic_config() -> AICConfig:
    """Attended-mode configuration for the test tenant."""
    return AICConfig(tenant_host=f"https://{TENANT_HOST}", redirect_port=0)


@pytest.fixture
def container_config() -> AICConfig:
    """Containerized-mode configuration for the test tenant."""
    return AICConfig(tenant_host=TENANT_HOST, containerized=True, token_file="/tmp/unused-token.json")


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def valid_record() -> TokenRecord:
    """Primary token valid for one hour."""
    return make_record()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by a handler function."""

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _factory


@pytest.fixture
def record_factory() -> Callable[..., TokenRecord]:
    """Build TokenRecords: record_factory("tok", expires_in_seconds=-60, tenant_host="other")."""
    return make_record


@pytest.fixture
def storage_factory() -> Callable[..., InMemoryStorage]:
    return InMemoryStorage


class FakeBrowser:
    """Stands in for webbrowser.open: follows the authorize URL to the loopback redirect."""

    def __init__(self, *, code: str | None = "auth-code", state: str | None = None, respond: bool = True) -> None:
        self.code = code
        self.state = state
        self.respond = respond
        self.opened_url: str | None = None
        self.response: httpx.Response | None = None
        self._task: asyncio.Task[None] | None = None

    def __call__(self, url: str) -> bool:
        self.opened_url = url
        if self.respond:
            self._task = asyncio.get_running_loop().create_task(self._redirect(url))
        return True

    async def finished(self) -> None:
        if self._task is not None:
            await self._task

    async def _redirect(self, url: str) -> None:
        query = parse_qs(urlsplit(url).query)
        redirect_uri = query["redirect_uri"][0].replace("localhost", "127.0.0.1")
        params = {"state": self.state or query["state"][0]}
        if self.code:
            params["code"] = self.code
        async with httpx.AsyncClient() as client:
            self.response = await client.get(
                redirect_uri, params=params, headers={"referer": f"https://{TENANT_HOST}/am/XUI/"}
            )
