"""Exception hierarchy for wechatapi.

All exceptions inherit from :class:`WeChatAPIError`, a tagged error that
records its :class:`ErrorKind` along with the optional ``status``,
``code`` and ``raw_body`` fields relevant to that kind. Each subclass also
carries a class-level ``exit_code`` from :mod:`wechatapi.exit_codes`; the
CLI entry point catches ``WeChatAPIError`` and exits with it.

Subclass hierarchy::

    WeChatAPIError              (exit 1)
    +-- TransportError          (exit 5)
    +-- DecodeError             (exit 6)
    +-- ApiError                (exit 7, or 3 for errcode 40001)
    +-- CapabilityError         (exit 10)
    |   +-- DuplicateCapabilityError
    +-- ConfigError             (exit 1)
"""

from __future__ import annotations

import enum
from typing import Optional

from wechatapi.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CAPABILITY_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_TRANSPORT_ERROR,
)

INVALID_CREDENTIAL_CODE = 40001
"""``errcode`` the platform returns for an expired or revoked access token."""


class ErrorKind(str, enum.Enum):
    """Discriminator stored on every :class:`WeChatAPIError`."""

    TRANSPORT = "transport"
    DECODE = "decode"
    API = "api"
    CAPABILITY = "capability"
    CONFIG = "config"


class WeChatAPIError(Exception):
    """Base exception for all wechatapi errors.

    Args:
        message: Human-readable error description.
        kind: Which failure class this error belongs to.
        status: HTTP status code, for transport errors.
        code: Platform ``errcode``, for API errors.
        raw_body: Undecodable response body, for decode errors.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    default_kind: ErrorKind = ErrorKind.CONFIG

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        status: Optional[int] = None,
        code: Optional[int] = None,
        raw_body: Optional[bytes] = None,
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.status = status
        self.code = code
        self.raw_body = raw_body
        if exit_code is not None:
            self.exit_code = exit_code


class TransportError(WeChatAPIError):
    """Raised when the HTTP exchange itself fails.

    Either the status code fell outside ``[200, 204]`` (``status`` is set)
    or httpx could not complete the request at all (``status`` is ``None``).
    Never retried by the client.
    """

    exit_code = EXIT_TRANSPORT_ERROR
    default_kind = ErrorKind.TRANSPORT

    def __init__(self, url: str, status: Optional[int] = None, message: Optional[str] = None):
        if message is None:
            message = f"url: {url}, status code: {status}"
        super().__init__(message, status=status)
        self.url = url


class DecodeError(WeChatAPIError):
    """Raised when a response declared as JSON cannot be parsed."""

    exit_code = EXIT_DECODE_ERROR
    default_kind = ErrorKind.DECODE

    def __init__(self, raw_body: bytes):
        text = raw_body.decode("utf-8", errors="replace")
        super().__init__(f"JSON decode error. body is {text}", raw_body=raw_body)


class ApiError(WeChatAPIError):
    """Raised when the platform answers with a nonzero ``errcode``."""

    exit_code = EXIT_API_ERROR
    default_kind = ErrorKind.API

    def __init__(self, message: str, code: int):
        super().__init__(message, code=code)
        if code == INVALID_CREDENTIAL_CODE:
            self.exit_code = EXIT_AUTH_FAILURE

    @property
    def is_invalid_credential(self) -> bool:
        """Whether the platform rejected the access token itself."""
        return self.code == INVALID_CREDENTIAL_CODE


class CapabilityError(WeChatAPIError):
    """Raised when an extension mapping cannot be registered."""

    exit_code = EXIT_CAPABILITY_ERROR
    default_kind = ErrorKind.CAPABILITY


class DuplicateCapabilityError(CapabilityError):
    """Raised when an operation name is already a client attribute or capability."""

    def __init__(self, name: str):
        super().__init__(f"Don't allow override existed method. method: {name}")
        self.name = name


class ConfigError(WeChatAPIError):
    """Raised for configuration problems (missing app secret, bad config file, bad hook output)."""

    exit_code = EXIT_GENERIC_FAILURE
    default_kind = ErrorKind.CONFIG
