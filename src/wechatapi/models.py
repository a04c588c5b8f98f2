"""Canonical Pydantic models shared across all wechatapi modules.

The models fall into two groups:

**Credential** -- the immutable access-token value produced by every
refresh and handed to caller-supplied storage:
    :class:`Credential`.

**Configuration models** -- serialised as JSON in the user's config directory
and passed to :class:`~wechatapi.client.Client`:
    :class:`Prefixes`, :class:`RequestConfig`, :class:`OutputConfig`, and
    :class:`ClientConfig`.

All models use Pydantic v2. ``Credential`` is frozen so a refreshed token is
always a new instance rather than an edited one.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator


# --- Credential ---

_PRINCIPAL_KEYS = ("principal_id", "principalId", "appid", "app_id")
_TOKEN_KEYS = ("token", "access_token", "accessToken")
_EXPIRY_KEYS = ("expires_at", "expiresAt", "expire_time", "expireTime")


class Credential(BaseModel):
    """A short-lived access token issued for one principal (``appid``).

    Credential-like mappings coming back from storage hooks may use the
    platform's own names (``appid``, ``access_token``, ``expire_time``) or
    camel-cased ones (``principalId``, ``accessToken``, ``expiresAt``,
    ``expireTime``). Numeric expiries are read as Unix epoch seconds, or
    milliseconds when the value is large enough to be one.

    Example::

        token = Credential(
            principal_id="wx1234",
            token="ACCESS_TOKEN",
            expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )
        assert token.is_valid()
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    principal_id: str = Field(
        validation_alias=AliasChoices(*_PRINCIPAL_KEYS),
        description="Identity the token was issued for",
    )
    token: str = Field(
        default="",
        validation_alias=AliasChoices(*_TOKEN_KEYS),
        description="Bearer secret sent as the access_token query parameter",
    )
    expires_at: datetime = Field(
        validation_alias=AliasChoices(*_EXPIRY_KEYS),
        description="Absolute UTC instant after which the token is stale",
    )

    @field_validator("expires_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` iff the token is non-empty and not yet expired.

        Args:
            now: Reference instant; defaults to the current UTC time.
        """
        if not self.token:
            return False
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now < self.expires_at

    @classmethod
    def coerce(cls, value: Any, principal_id: Optional[str] = None) -> Optional[Credential]:
        """Rebuild a :class:`Credential` from whatever a storage hook returned.

        Accepts a ``Credential``, a mapping, or any object exposing matching
        attributes. Returns ``None`` for ``None`` or a value that does not
        validate, so callers treat it exactly like a missing token.

        Args:
            value: The hook result.
            principal_id: Used when *value* names no principal of its own.
        """
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            data = dict(value)
        else:
            data = {
                name: getattr(value, name)
                for name in _PRINCIPAL_KEYS + _TOKEN_KEYS + _EXPIRY_KEYS
                if hasattr(value, name)
            }
        if principal_id is not None and not any(key in data for key in _PRINCIPAL_KEYS):
            data["principal_id"] = principal_id
        try:
            return cls.model_validate(data)
        except ValidationError:
            return None

    @classmethod
    def from_token_response(
        cls,
        principal_id: str,
        payload: Mapping[str, Any],
        now: Optional[datetime] = None,
        safety_margin: int = 10,
    ) -> Credential:
        """Build a credential from the ``cgi-bin/token`` response body.

        The expiry is pulled forward by *safety_margin* seconds so a token
        is never used right at the edge of its lifetime.

        Args:
            principal_id: The ``appid`` the token was requested for.
            payload: Decoded JSON with ``access_token`` and ``expires_in``.
            now: Issue instant; defaults to the current UTC time.
            safety_margin: Seconds subtracted from ``expires_in``.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        expires_in = int(payload.get("expires_in") or 0)
        return cls(
            principal_id=principal_id,
            token=payload.get("access_token") or "",
            expires_at=now + timedelta(seconds=expires_in - safety_margin),
        )


# --- Configuration ---


class Prefixes(BaseModel):
    """Base URL prefix for each remote subsystem of the platform."""

    api: str = "https://api.weixin.qq.com/cgi-bin/"
    mp: str = "https://mp.weixin.qq.com/cgi-bin/"
    file_server: str = "http://file.api.weixin.qq.com/cgi-bin/"
    pay: str = "https://api.weixin.qq.com/pay/"
    merchant: str = "https://api.weixin.qq.com/merchant/"
    customservice: str = "https://api.weixin.qq.com/customservice/"


class RequestConfig(BaseModel):
    """HTTP settings used when the client creates its own ``httpx.AsyncClient``."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    default_headers: dict[str, str] = Field(
        default_factory=dict, description="Headers merged into every request"
    )


class OutputConfig(BaseModel):
    """Default output format preferences for the CLI."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class ClientConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/wechatapi/config.json``.

    Loaded and saved by :func:`~wechatapi.config.load_config` and
    :func:`~wechatapi.config.save_config`. Environment variables and CLI flags
    override the values read from disk; see
    :func:`~wechatapi.config.resolve_config` for the precedence chain.

    Extra fields are preserved in ``model_extra`` so that extension modules
    can keep their own settings in the same file.
    """

    model_config = ConfigDict(extra="allow")

    app_id: Optional[str] = Field(default=None, description="Principal (appid)")
    app_secret: Optional[str] = Field(
        default=None, description="App secret used by the default token refresh"
    )
    app_secret_source: Optional[str] = Field(
        default=None,
        description="Where to read the app secret: env:VAR, file:/path, prompt",
    )
    environment: str = Field(
        default="development", description="Deployment mode: development, production"
    )
    token_safety_margin: int = Field(
        default=10, description="Seconds subtracted from a fresh token's lifetime"
    )
    prefixes: Prefixes = Field(default_factory=Prefixes)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @property
    def is_production(self) -> bool:
        """Whether the configured environment is ``production``."""
        return self.environment.lower() == "production"
