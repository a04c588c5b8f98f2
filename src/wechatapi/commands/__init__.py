"""Built-in CLI sub-commands for wechatapi.

* :mod:`~wechatapi.commands.token` -- show or force-refresh the access token.
* :mod:`~wechatapi.commands.call` -- send an authorized request.
* :mod:`~wechatapi.commands.config` -- view and modify the config file.

Each module exports a :class:`typer.Typer` sub-application or a plain
callback registered directly on the root app.
"""

from __future__ import annotations

from typing import Any

import typer

from wechatapi.client import Client
from wechatapi.output import error, suggest


def client_from_context(ctx: typer.Context) -> Client:
    """Build a :class:`~wechatapi.client.Client` from the resolved root options.

    Raises:
        typer.Exit: With code 2 when no ``appid`` is configured.
    """
    from wechatapi.config import resolve_config

    obj: dict[str, Any] = ctx.obj or {}
    config = resolve_config(
        cli_app_id=obj.get("app_id"),
        cli_environment=obj.get("environment"),
    )
    if not config.app_id:
        error("No appid configured.")
        suggest("Pass --app-id, set WECHATAPI_APP_ID, or run "
                "'wechatapi config set app_id <appid>'.")
        raise typer.Exit(code=2)
    return Client(config.app_id, config=config)
