"""CLI tests for the built-in token, call and config commands."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from conftest import APP_ID, FakeCredentialHooks, RecordingTransport, errcode_response
from wechatapi import __version__
from wechatapi.app import app, main, register_commands
from wechatapi.client import Client
from wechatapi.exceptions import ApiError

runner = CliRunner()


@pytest.fixture(autouse=True)
def _commands(isolated_config: Path) -> None:
    register_commands()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport(lambda r: httpx.Response(200, json={"ip_list": ["101.226.103.0"]}))


@pytest.fixture
def wired(
    monkeypatch: pytest.MonkeyPatch, hooks: FakeCredentialHooks, transport: RecordingTransport
) -> RecordingTransport:
    """Make every command build a client on the recording transport."""

    def _client(ctx) -> Client:
        return Client(APP_ID, hooks.get, hooks.refresh, http_client=transport.client())

    monkeypatch.setattr("wechatapi.commands.client_from_context", _client)
    return transport


# ------------------------------------------------------------------ #
# Root options
# ------------------------------------------------------------------ #


class TestRoot:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_appid(self, isolated_config: Path) -> None:
        result = runner.invoke(app, ["token", "show"])
        assert result.exit_code == 2
        assert "No appid configured" in result.output
        assert "WECHATAPI_APP_ID" in result.output

    def test_unknown_output_format_in_config_warns(self, isolated_config: Path) -> None:
        runner.invoke(app, ["config", "set", "output.format", "yaml"])

        result = runner.invoke(app, ["--no-color", "config", "show"])

        assert result.exit_code == 0, result.output
        assert "Warning: Ignoring output.format from config" in result.output


# ------------------------------------------------------------------ #
# token
# ------------------------------------------------------------------ #


class TestToken:
    def test_show_masks_token(self, wired: RecordingTransport, hooks: FakeCredentialHooks) -> None:
        hooks.current = hooks.current.model_copy(update={"token": "ABCDEFGHIJKLMNOP"})

        result = runner.invoke(app, ["--json", "token", "show"])

        assert result.exit_code == 0, result.output
        records = json.loads(result.stdout)
        assert records[0]["appid"] == APP_ID
        assert records[0]["token"] == "ABCD...MNOP"
        assert records[0]["valid"] == "yes"
        assert hooks.refreshes == 0

    def test_refresh(self, wired: RecordingTransport, hooks: FakeCredentialHooks) -> None:
        result = runner.invoke(app, ["--json", "-q", "token", "refresh"])

        assert result.exit_code == 0, result.output
        assert hooks.refreshes == 1
        assert json.loads(result.stdout)[0]["appid"] == APP_ID


# ------------------------------------------------------------------ #
# call
# ------------------------------------------------------------------ #


class TestCall:
    def test_get_with_params(self, wired: RecordingTransport) -> None:
        result = runner.invoke(app, ["--json", "call", "getcallbackip", "-P", "lang=en"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"ip_list": ["101.226.103.0"]}
        request = wired.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/cgi-bin/getcallbackip"
        assert request.url.params["access_token"] == "token-1"
        assert request.url.params["lang"] == "en"

    def test_post_body(self, wired: RecordingTransport) -> None:
        result = runner.invoke(
            app, ["--json", "call", "menu/create", "-X", "post", "-d", '{"button": []}']
        )

        assert result.exit_code == 0, result.output
        request = wired.requests[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"button": []}

    def test_other_prefix(self, wired: RecordingTransport) -> None:
        result = runner.invoke(app, ["--json", "call", "kfaccount/add", "--prefix", "customservice"])

        assert result.exit_code == 0, result.output
        assert str(wired.requests[0].url).startswith(
            "https://api.weixin.qq.com/customservice/kfaccount/add?"
        )

    def test_no_token(self, wired: RecordingTransport, hooks: FakeCredentialHooks) -> None:
        result = runner.invoke(app, ["--json", "call", "showqrcode", "--prefix", "mp", "--no-token", "-P", "ticket=T"])

        assert result.exit_code == 0, result.output
        url = wired.requests[0].url
        assert "access_token" not in url.params
        assert url.params["ticket"] == "T"
        assert hooks.gets == 0

    def test_binary_response(
        self, monkeypatch: pytest.MonkeyPatch, hooks: FakeCredentialHooks
    ) -> None:
        transport = RecordingTransport(
            lambda r: httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})
        )
        monkeypatch.setattr(
            "wechatapi.commands.client_from_context",
            lambda ctx: Client(APP_ID, hooks.get, hooks.refresh, http_client=transport.client()),
        )

        result = runner.invoke(app, ["call", "media/get", "-P", "media_id=M"])

        assert result.exit_code == 0, result.output
        assert "Received 4 bytes of non-JSON content." in result.output

    def test_bad_param(self, wired: RecordingTransport) -> None:
        result = runner.invoke(app, ["call", "menu/get", "-P", "novalue"])
        assert result.exit_code == 2
        assert "expected key=value" in result.output
        assert wired.calls == 0

    def test_bad_body(self, wired: RecordingTransport) -> None:
        result = runner.invoke(app, ["call", "menu/create", "-X", "POST", "-d", "{oops"])
        assert result.exit_code == 2
        assert "not valid JSON" in result.output

    def test_api_error_propagates(
        self, monkeypatch: pytest.MonkeyPatch, hooks: FakeCredentialHooks
    ) -> None:
        transport = RecordingTransport(lambda r: errcode_response(40013, "invalid appid"))
        monkeypatch.setattr(
            "wechatapi.commands.client_from_context",
            lambda ctx: Client(APP_ID, hooks.get, hooks.refresh, http_client=transport.client()),
        )

        result = runner.invoke(app, ["call", "menu/get"])

        assert isinstance(result.exception, ApiError)
        assert result.exception.code == 40013


class TestMainEntryPoint:
    def test_api_error_exit_code(
        self, monkeypatch: pytest.MonkeyPatch, hooks: FakeCredentialHooks, capsys
    ) -> None:
        transport = RecordingTransport(lambda r: errcode_response(40013, "invalid appid"))
        monkeypatch.setattr(
            "wechatapi.commands.client_from_context",
            lambda ctx: Client(APP_ID, hooks.get, hooks.refresh, http_client=transport.client()),
        )
        monkeypatch.setattr("wechatapi.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr(
            "wechatapi.capabilities.discover_capabilities", lambda client_cls=None: []
        )
        monkeypatch.setattr(sys, "argv", ["wechatapi", "--no-color", "call", "menu/get"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 7
        assert "invalid appid" in capsys.readouterr().err


# ------------------------------------------------------------------ #
# config
# ------------------------------------------------------------------ #


class TestConfig:
    def test_set_and_show(self, isolated_config: Path) -> None:
        result = runner.invoke(app, ["config", "set", "app_id", "wx-cli"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["--json", "-q", "config", "show"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["app_id"] == "wx-cli"

    def test_secret_masked(self, isolated_config: Path) -> None:
        result = runner.invoke(app, ["config", "set", "app_secret", "s3cret"])
        assert result.exit_code == 0, result.output
        assert "s3cret" not in result.output

        result = runner.invoke(app, ["--json", "-q", "config", "show"])
        assert json.loads(result.stdout)["app_secret"] == "********"

    def test_nested_int(self, isolated_config: Path) -> None:
        result = runner.invoke(app, ["config", "set", "token_safety_margin", "60"])
        assert result.exit_code == 0, result.output

        from wechatapi.config import load_config

        assert load_config().token_safety_margin == 60

    def test_nested_key(self, isolated_config: Path) -> None:
        result = runner.invoke(app, ["config", "set", "prefixes.api", "https://proxy.example/cgi-bin/"])
        assert result.exit_code == 0, result.output

        from wechatapi.config import load_config

        assert load_config().prefixes.api == "https://proxy.example/cgi-bin/"

    def test_unknown_key(self, isolated_config: Path) -> None:
        result = runner.invoke(app, ["config", "set", "nope", "1"])
        assert result.exit_code == 2
        assert "Unknown config key" in result.output

    def test_wrong_type(self, isolated_config: Path) -> None:
        result = runner.invoke(app, ["config", "set", "token_safety_margin", "soon"])
        assert result.exit_code == 2

    def test_reset(self, isolated_config: Path) -> None:
        runner.invoke(app, ["config", "set", "app_id", "wx-cli"])
        result = runner.invoke(app, ["config", "reset", "--force"])
        assert result.exit_code == 0, result.output

        from wechatapi.config import load_config

        assert load_config().app_id is None

    def test_appid_from_config_used(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        runner.invoke(app, ["config", "set", "app_id", "wx-cli"])
        seen = {}

        def _fake_client(app_id, *args, **kwargs):
            seen["app_id"] = app_id
            raise ApiError("stop", 40013)

        monkeypatch.setattr("wechatapi.commands.Client", _fake_client)
        result = runner.invoke(app, ["token", "show"])

        assert seen["app_id"] == "wx-cli"
        assert isinstance(result.exception, ApiError)
