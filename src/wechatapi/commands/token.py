"""Token commands -- inspect and refresh the access token.

The CLI keeps no token between runs: every invocation builds a client on a
fresh :class:`~wechatapi.storage.MemoryCredentialStorage`, so ``token show``
fetches a new token from the platform just as ``token refresh`` does. Each
fetch counts against the appid's daily token quota.

Typical workflow::

    wechatapi token show       # fetch and display a token
    wechatapi token refresh    # force a new token from the platform
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import typer

from wechatapi.models import Credential
from wechatapi.output import print_table, success


token_app = typer.Typer(no_args_is_help=True)


def _mask(token: str) -> str:
    """Keep the first and last four characters of *token*."""
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


def _print_credential(credential: Credential) -> None:
    remaining = credential.expires_at - datetime.now(timezone.utc)
    print_table(
        ["appid", "token", "expires_at", "expires_in", "valid"],
        [[
            credential.principal_id,
            _mask(credential.token),
            credential.expires_at.isoformat(),
            str(max(int(remaining.total_seconds()), 0)),
            "yes" if credential.is_valid() else "no",
        ]],
        title="Access token",
    )


@token_app.command("show")
def token_show(ctx: typer.Context) -> None:
    """Fetch an access token for the configured appid and show it.

    Nothing is stored between runs, so this always asks the platform for a
    new token.

    Example::

        wechatapi token show
        wechatapi --json token show
    """
    from wechatapi.commands import client_from_context

    client = client_from_context(ctx)

    async def _run() -> Credential:
        async with client:
            return await client.ensure_credential()

    _print_credential(asyncio.run(_run()))


@token_app.command("refresh")
def token_refresh(ctx: typer.Context) -> None:
    """Discard the current access token and fetch a new one.

    Example::

        wechatapi token refresh
    """
    from wechatapi.commands import client_from_context

    client = client_from_context(ctx)

    async def _run() -> Credential:
        async with client:
            return await client.refresh_access_token()

    credential = asyncio.run(_run())
    success(f"Refreshed access token for {credential.principal_id}.")
    _print_credential(credential)
