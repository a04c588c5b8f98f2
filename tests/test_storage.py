"""Tests for the credential storage adapters."""

from __future__ import annotations

import logging

import pytest

from conftest import APP_ID, make_credential
from wechatapi.storage import CredentialStorage, MemoryCredentialStorage

pytestmark = pytest.mark.asyncio


class TestMemoryCredentialStorage:
    async def test_empty(self) -> None:
        assert await MemoryCredentialStorage(production=False).get(APP_ID) is None

    async def test_save_then_get(self) -> None:
        storage = MemoryCredentialStorage(production=False)
        credential = make_credential()

        await storage.save(credential)

        assert await storage.get(APP_ID) is credential

    async def test_save_replaces(self) -> None:
        storage = MemoryCredentialStorage(production=False)
        await storage.save(make_credential(token="a"))
        await storage.save(make_credential(token="b"))

        stored = await storage.get(APP_ID)
        assert stored is not None
        assert stored.token == "b"

    async def test_other_principal_not_returned(self) -> None:
        storage = MemoryCredentialStorage(production=False)
        await storage.save(make_credential(principal_id="wx-other"))

        assert await storage.get(APP_ID) is None

    async def test_no_warning_outside_production(self, caplog: pytest.LogCaptureFixture) -> None:
        storage = MemoryCredentialStorage(production=False)
        with caplog.at_level(logging.WARNING, logger="wechatapi.storage"):
            await storage.save(make_credential())
        assert caplog.records == []

    async def test_warns_in_production(self, caplog: pytest.LogCaptureFixture) -> None:
        storage = MemoryCredentialStorage(production=True)
        with caplog.at_level(logging.WARNING, logger="wechatapi.storage"):
            await storage.save(make_credential())
        assert len(caplog.records) == 1
        assert APP_ID in caplog.text

    async def test_production_read_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("WECHATAPI_ENV", "production")
        storage = MemoryCredentialStorage()
        with caplog.at_level(logging.WARNING, logger="wechatapi.storage"):
            await storage.save(make_credential())
        assert "Don't save token in memory" in caplog.text


class TestCustomStorage:
    async def test_subclass_contract(self) -> None:
        class DictStorage(CredentialStorage):
            def __init__(self) -> None:
                self.data = {}

            async def get(self, principal_id):
                return self.data.get(principal_id)

            async def save(self, credential):
                self.data[credential.principal_id] = credential

        storage = DictStorage()
        await storage.save(make_credential())
        assert (await storage.get(APP_ID)).token == "token-1"

    def test_abstract(self) -> None:
        with pytest.raises(TypeError):
            CredentialStorage()  # type: ignore[abstract]
