"""Asynchronous WeChat API client -- access-token lifecycle and request dispatch.

This module provides :class:`Client`, the single point through which every
call to the platform is made. It wraps :class:`httpx.AsyncClient` and adds:

* **Credential management** -- :meth:`Client.ensure_credential` asks the
  configured getter for the stored token and refreshes it when it is
  missing or expired. Both hooks are injectable; by default they read from
  and write to a :class:`~wechatapi.storage.CredentialStorage`.
* **Option merging** -- :meth:`Client.configure_defaults` sets an option bag
  merged under every call (headers key by key, everything else replaced).
* **Response interpretation** -- non-2xx statuses, undecodable JSON and
  nonzero ``errcode`` payloads become typed exceptions.
* **Token retry** -- an ``errcode`` of ``40001`` means the platform no longer
  accepts the token in the URL. The client refreshes, substitutes the new
  token into the ``access_token`` query parameter and dispatches again,
  at most ``retry`` times in total.
* **Capabilities** -- endpoint modules attach operations with
  :meth:`Client.extend`; see :mod:`wechatapi.capabilities`.

Concurrent requests on one client are independent. Two of them seeing an
expired token at the same moment will both refresh; coordinate in the
storage hooks if that matters for your deployment.

Example::

    async with Client("wx1234", app_secret="...") as client:
        url = await client.authorized_url("menu/get")
        menu = await client.request(url)
"""

from __future__ import annotations

import json
import types
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, ClassVar, Optional

import httpx

from wechatapi.capabilities import CapabilityRegistry
from wechatapi.exceptions import ApiError, ConfigError, DecodeError, TransportError
from wechatapi.models import ClientConfig, Credential, Prefixes
from wechatapi.storage import CredentialStorage, MemoryCredentialStorage

CredentialGetter = Callable[[str], Awaitable[Any]]
"""``async (principal_id) -> credential-like | None``."""

CredentialRefresher = Callable[[str], Awaitable[Any]]
"""``async (principal_id) -> credential-like``; must persist what it returns."""

DEFAULT_RETRY = 3
ACCESS_TOKEN_PARAM = "access_token"


class Client:
    """WeChat API client with transparent access-token refresh.

    Args:
        app_id: The principal (``appid``) tokens are issued for.
        get_credential: Async getter returning the stored credential for a
            principal. Defaults to ``storage.get``.
        refresh_credential: Async function that obtains, persists and
            returns a new credential. Defaults to fetching one from the
            ``cgi-bin/token`` endpoint with *app_secret* and saving it to
            *storage*. Supply both hooks together or neither.
        app_secret: Secret for the default refresh. Falls back to
            ``config.app_secret``.
        storage: Where the default hooks keep the token. Defaults to a
            :class:`~wechatapi.storage.MemoryCredentialStorage`, which is
            unsafe once more than one process shares the ``appid``.
        config: URL prefixes, request settings and environment.
        http_client: Pre-built transport. When omitted the client creates
            and owns an :class:`httpx.AsyncClient`.
    """

    _capabilities: ClassVar[CapabilityRegistry] = CapabilityRegistry()

    # Set in __init__, so invisible to dir(Client) but still not overridable.
    _INSTANCE_ATTRIBUTES: ClassVar[frozenset[str]] = frozenset(
        {
            "app_id",
            "defaults",
            "prefix",
            "mp_prefix",
            "file_server_prefix",
            "pay_prefix",
            "merchant_prefix",
            "customservice_prefix",
            "_config",
            "_app_secret",
            "_storage",
            "_get_credential",
            "_refresh_credential",
            "_http",
            "_owns_http",
        }
    )

    def __init__(
        self,
        app_id: str,
        get_credential: Optional[CredentialGetter] = None,
        refresh_credential: Optional[CredentialRefresher] = None,
        *,
        app_secret: Optional[str] = None,
        storage: Optional[CredentialStorage] = None,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or ClientConfig()
        self.app_id = app_id
        self._app_secret = app_secret if app_secret is not None else self._config.app_secret

        if storage is None:
            storage = MemoryCredentialStorage(
                production=True if self._config.is_production else None
            )
        self._storage = storage
        self._get_credential: CredentialGetter = get_credential or storage.get
        self._refresh_credential: CredentialRefresher = (
            refresh_credential or self._fetch_access_token
        )

        prefixes: Prefixes = self._config.prefixes
        self.prefix = prefixes.api
        self.mp_prefix = prefixes.mp
        self.file_server_prefix = prefixes.file_server
        self.pay_prefix = prefixes.pay
        self.merchant_prefix = prefixes.merchant
        self.customservice_prefix = prefixes.customservice

        self.defaults: dict[str, Any] = {}
        if self._config.request.default_headers:
            self.defaults["headers"] = dict(self._config.request.default_headers)

        self._http = http_client
        self._owns_http = http_client is None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Client:
        self._get_http()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying transport if this client created it."""
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    # ------------------------------------------------------------------ #
    # Capabilities
    # ------------------------------------------------------------------ #

    @classmethod
    def extend(cls, capabilities: Mapping[str, Callable[..., Any]]) -> None:
        """Expose every operation in *capabilities* on all client instances.

        Each callable receives the client as its first argument.

        Raises:
            DuplicateCapabilityError: If a name is already a client attribute
                or a registered capability. Nothing is registered in that case.
            CapabilityError: If a value is not callable.

        Example::

            Client.extend({"get_menu": get_menu})
        """
        reserved = set(dir(cls)) | cls._INSTANCE_ATTRIBUTES
        cls._capabilities.register(capabilities, reserved=reserved)

    @classmethod
    def capabilities(cls) -> list[str]:
        """Return the names of all registered capabilities."""
        return cls._capabilities.names()

    def __getattr__(self, name: str) -> Any:
        operation = type(self)._capabilities.get(name)
        if operation is None:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            )
        return types.MethodType(operation, self)

    # ------------------------------------------------------------------ #
    # Request dispatch
    # ------------------------------------------------------------------ #

    def configure_defaults(self, options: Mapping[str, Any]) -> None:
        """Replace the option bag merged into every future request.

        Example::

            client.configure_defaults({"timeout": 15, "headers": {"User-Agent": "bot"}})
        """
        self.defaults = dict(options)

    async def request(
        self,
        url: str,
        options: Optional[Mapping[str, Any]] = None,
        retry: int = DEFAULT_RETRY,
    ) -> Any:
        """Dispatch a request and interpret the platform's answer.

        Args:
            url: Absolute URL, usually already carrying ``access_token``.
            options: Per-call :meth:`httpx.AsyncClient.request` arguments
                (``method``, ``params``, ``json``, ``data``, ``content``,
                ``files``, ``headers``, ``timeout``, ...), merged over
                :attr:`defaults`.
            retry: Maximum number of dispatches, the original included. Only
                ``errcode`` 40001 consumes further attempts; ``retry=1`` (or
                less) disables the refresh-and-retry entirely.

        Returns:
            The decoded JSON payload for ``application/json`` responses,
            otherwise the raw body as ``bytes``.

        Raises:
            TransportError: Status outside ``[200, 204]`` or network failure.
            DecodeError: JSON content type with an unparsable body.
            ApiError: Nonzero ``errcode``; for 40001 only once the
                attempts are used up.
        """
        attempts = max(retry, 1)
        for attempt in range(1, attempts + 1):
            try:
                return await self._dispatch(url, options)
            except ApiError as exc:
                if not exc.is_invalid_credential or attempt == attempts:
                    raise
            credential = await self.refresh_access_token()
            url = replace_access_token(url, credential.token)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _dispatch(self, url: str, options: Optional[Mapping[str, Any]]) -> Any:
        """Issue one HTTP call and map the response to a result or an error."""
        merged = merge_options(self.defaults, options)
        method = merged.pop("method", "GET")

        try:
            response = await self._get_http().request(method, url, **merged)
        except httpx.HTTPError as exc:
            raise TransportError(url, message=f"url: {url}, {exc}") from exc

        if response.status_code < 200 or response.status_code > 204:
            raise TransportError(url, response.status_code)

        body = response.content
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return body

        try:
            data = json.loads(body)
        except ValueError as exc:
            raise DecodeError(body) from exc

        if isinstance(data, dict) and data.get("errcode"):
            raise ApiError(data.get("errmsg") or "", data["errcode"])
        return data

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            config = self._config.request
            self._http = httpx.AsyncClient(timeout=config.timeout, verify=config.verify_ssl)
            self._owns_http = True
        return self._http

    # ------------------------------------------------------------------ #
    # Credentials
    # ------------------------------------------------------------------ #

    async def ensure_credential(self) -> Credential:
        """Return a valid credential, refreshing when the stored one is unusable.

        The getter is consulted on every call; nothing is cached here. A
        stored value that names no principal is taken to be this client's.
        """
        stored = await self._get_credential(self.app_id)
        credential = Credential.coerce(stored, principal_id=self.app_id)
        if credential is not None and credential.is_valid():
            return credential
        return await self.refresh_access_token()

    async def refresh_access_token(self) -> Credential:
        """Obtain a new credential through the refresh hook.

        Raises:
            ConfigError: If the hook returned something that is not
                credential-shaped.
        """
        result = await self._refresh_credential(self.app_id)
        credential = Credential.coerce(result, principal_id=self.app_id)
        if credential is None:
            raise ConfigError(
                f"refresh_credential returned {type(result).__name__}, expected a credential"
            )
        return credential

    async def authorized_url(self, path: str, prefix: Optional[str] = None, **params: Any) -> str:
        """Build ``prefix + path`` carrying a valid ``access_token``.

        Args:
            path: Path relative to the prefix, e.g. ``"menu/get"``.
            prefix: A :class:`~wechatapi.models.Prefixes` field name
                (``"mp"``, ``"pay"``, ...) or a literal base URL. Defaults to
                the ``cgi-bin`` API prefix.
            **params: Additional query parameters.
        """
        credential = await self.ensure_credential()
        url = httpx.URL(self.resolve_prefix(prefix) + path)
        return str(url.copy_merge_params({ACCESS_TOKEN_PARAM: credential.token, **params}))

    def resolve_prefix(self, prefix: Optional[str]) -> str:
        """Map a prefix name or literal base URL to a base URL.

        Raises:
            ConfigError: If *prefix* is neither a known name nor a URL.
        """
        if prefix is None:
            return self.prefix
        if "://" in prefix:
            return prefix
        if prefix not in Prefixes.model_fields:
            raise ConfigError(
                f"Unknown prefix '{prefix}'. Available: {', '.join(Prefixes.model_fields)}"
            )
        return getattr(self._config.prefixes, prefix)

    async def _fetch_access_token(self, principal_id: str) -> Credential:
        """Default refresh: ask ``cgi-bin/token`` for a new token and store it."""
        if not self._app_secret:
            raise ConfigError(
                f"No app secret configured for appid '{principal_id}' and no "
                "refresh_credential hook supplied"
            )
        payload = await self.request(
            self.prefix + "token",
            {
                "method": "GET",
                "params": {
                    "grant_type": "client_credential",
                    "appid": principal_id,
                    "secret": self._app_secret,
                },
            },
            retry=1,
        )
        if not isinstance(payload, Mapping):
            raise DecodeError(payload if isinstance(payload, bytes) else str(payload).encode())
        credential = Credential.from_token_response(
            principal_id, payload, safety_margin=self._config.token_safety_margin
        )
        await self._storage.save(credential)
        return credential


# ---------------------------------------------------------------------- #
# Helpers
# ---------------------------------------------------------------------- #


def merge_options(
    defaults: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]],
) -> dict[str, Any]:
    """Merge per-call *overrides* over *defaults* without mutating either.

    ``headers`` are merged key by key; every other key is replaced.

    Example::

        merge_options({"headers": {"A": "1"}, "timeout": 5},
                      {"headers": {"B": "2"}, "timeout": 10})
        # {"headers": {"A": "1", "B": "2"}, "timeout": 10}
    """
    merged = dict(defaults)
    if merged.get("headers") is not None:
        merged["headers"] = dict(merged["headers"])
    for key, value in (overrides or {}).items():
        if key != "headers":
            merged[key] = value
        elif value:
            merged["headers"] = {**(merged.get("headers") or {}), **value}
    return merged


def replace_access_token(url: str, token: str) -> str:
    """Swap the ``access_token`` query parameter of *url* for *token*.

    URLs without an ``access_token`` parameter are returned unchanged.
    """
    parsed = httpx.URL(url)
    if ACCESS_TOKEN_PARAM not in parsed.params:
        return url
    return str(parsed.copy_set_param(ACCESS_TOKEN_PARAM, token))
