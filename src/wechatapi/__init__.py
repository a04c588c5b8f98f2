"""wechatapi -- access-token management and request dispatch for the WeChat API.

The package keeps a short-lived access token valid, refreshes it when the
platform rejects it, and offers one request primitive that endpoint modules
build on through :meth:`Client.extend`.

Typical usage::

    from wechatapi import Client

    async with Client("wx1234", app_secret="...") as client:
        url = await client.authorized_url("getcallbackip")
        ips = await client.request(url)

Modules:
    client: :class:`Client`, the request primitive and token lifecycle.
    models: Pydantic models (:class:`Credential`, :class:`ClientConfig`).
    storage: Credential storage adapters.
    capabilities: Registry and entry-point discovery for extensions.
    config: XDG-aware configuration loading and precedence.
    exceptions: Tagged exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

from wechatapi.client import Client, merge_options, replace_access_token  # noqa: E402
from wechatapi.exceptions import (  # noqa: E402
    ApiError,
    CapabilityError,
    ConfigError,
    DecodeError,
    DuplicateCapabilityError,
    ErrorKind,
    TransportError,
    WeChatAPIError,
)
from wechatapi.models import ClientConfig, Credential, Prefixes, RequestConfig  # noqa: E402
from wechatapi.storage import CredentialStorage, MemoryCredentialStorage  # noqa: E402

__all__ = [
    "ApiError",
    "CapabilityError",
    "Client",
    "ClientConfig",
    "ConfigError",
    "Credential",
    "CredentialStorage",
    "DecodeError",
    "DuplicateCapabilityError",
    "ErrorKind",
    "MemoryCredentialStorage",
    "Prefixes",
    "RequestConfig",
    "TransportError",
    "WeChatAPIError",
    "merge_options",
    "replace_access_token",
]
