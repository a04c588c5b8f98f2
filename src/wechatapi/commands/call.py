"""``wechatapi call`` -- send one authorized request and print the result.

The path is resolved against one of the configured prefixes and an
``access_token`` query parameter is added unless ``--no-token`` is given,
so a rejected token is refreshed and retried exactly as library callers
get it. No token is kept after the command exits, so each run starts
with a token fetch unless ``--no-token`` is given.

Example::

    wechatapi call menu/get
    wechatapi call message/custom/send --method POST --body '{"touser": "..."}'
    wechatapi call getcallbackip --prefix api --param lang=zh_CN
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import typer

from wechatapi.output import debug, error, format_response, info


def _parse_params(pairs: list[str]) -> dict[str, str]:
    """Turn ``["k=v", ...]`` into a dict."""
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            error(f"Invalid --param '{pair}', expected key=value")
            raise typer.Exit(code=2)
        params[key] = value
    return params


def call_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Path relative to the prefix, e.g. 'menu/get'."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    prefix: str = typer.Option(
        "api", "--prefix", help="Prefix name (api, mp, file_server, pay, merchant, customservice)."
    ),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter key=value (repeatable)."
    ),
    body: Optional[str] = typer.Option(None, "--body", "-d", help="JSON request body."),
    no_token: bool = typer.Option(
        False, "--no-token", help="Do not add the access_token query parameter."
    ),
    retry: int = typer.Option(3, "--retry", help="Maximum dispatches on token rejection."),
) -> None:
    """Send an authorized request to the platform.

    JSON responses are rendered in the active output format. Any other
    response is reported by size only.
    """
    from wechatapi.commands import client_from_context

    params = _parse_params(param or [])
    options: dict[str, Any] = {"method": method.upper()}
    if body is not None:
        try:
            options["json"] = json.loads(body)
        except json.JSONDecodeError as exc:
            error(f"--body is not valid JSON: {exc}")
            raise typer.Exit(code=2) from None

    client = client_from_context(ctx)

    async def _run() -> Any:
        async with client:
            if no_token:
                url = client.resolve_prefix(prefix) + path
                if params:
                    options["params"] = params
            else:
                url = await client.authorized_url(path, prefix=prefix, **params)
            debug(f"{options['method']} {url.split('?')[0]}")
            return await client.request(url, options, retry=retry)

    result = asyncio.run(_run())
    if isinstance(result, bytes):
        info(f"Received {len(result)} bytes of non-JSON content.")
        return
    format_response(result)
