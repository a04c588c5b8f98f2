"""Shared test fixtures for wechatapi.

Provides credential builders, a scripted transport for
:class:`httpx.AsyncClient`, isolation of the class-level capability registry
and of the user's config directory, and output reset between tests.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from wechatapi.capabilities import CapabilityRegistry
from wechatapi.client import Client
from wechatapi.models import Credential
from wechatapi.output import reset_output

APP_ID = "wx-test-app"
API_URL = "https://api.weixin.qq.com/cgi-bin/"


def make_credential(
    token: str = "token-1",
    expires_in: int = 7200,
    principal_id: str = APP_ID,
) -> Credential:
    """A credential expiring *expires_in* seconds from now (negative = expired)."""
    return Credential(
        principal_id=principal_id,
        token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    )


class FakeCredentialHooks:
    """Caller-side get/refresh hooks that count refreshes.

    Each refresh issues ``token-<n>`` with n starting at 2, so a test can tell
    which token a retried request carried.
    """

    def __init__(self, current: Optional[Credential] = None) -> None:
        self.current = current
        self.gets = 0
        self.refreshes = 0

    async def get(self, principal_id: str) -> Optional[Credential]:
        self.gets += 1
        return self.current

    async def refresh(self, principal_id: str) -> Credential:
        self.refreshes += 1
        self.current = make_credential(token=f"token-{self.refreshes + 1}", principal_id=principal_id)
        return self.current


class RecordingTransport:
    """Wraps a handler and records every request it serves."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def errcode_response(code: int, message: str = "") -> httpx.Response:
    return httpx.Response(200, json={"errcode": code, "errmsg": message})


@pytest.fixture
def hooks() -> FakeCredentialHooks:
    return FakeCredentialHooks(make_credential())


@pytest.fixture
def make_client(hooks: FakeCredentialHooks) -> Callable[..., Client]:
    """Factory for a client wired to *hooks* and a recording transport."""

    def _make(transport: RecordingTransport, **kwargs: Any) -> Client:
        kwargs.setdefault("get_credential", hooks.get)
        kwargs.setdefault("refresh_credential", hooks.refresh)
        return Client(APP_ID, http_client=transport.client(), **kwargs)

    return _make


@pytest.fixture(autouse=True)
def _isolated_capabilities(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every test an empty capability registry."""
    monkeypatch.setattr(Client, "_capabilities", CapabilityRegistry())


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Drop the global OutputManager so stale stdout references never leak."""
    yield
    reset_output()


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG directories at *tmp_path* and clear WECHATAPI_* variables."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("wechatapi.config._is_xdg_platform", lambda: True)
    for var in ["WECHATAPI_APP_ID", "WECHATAPI_APP_SECRET", "WECHATAPI_ENV"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
