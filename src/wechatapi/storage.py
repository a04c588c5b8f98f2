"""Credential storage adapters.

The client never keeps a token itself: every
:meth:`~wechatapi.client.Client.ensure_credential` call asks a
:class:`CredentialStorage` (or a caller-supplied getter) for the current
token and every refresh hands the new one back for safekeeping.

:class:`MemoryCredentialStorage` is the default adapter. It holds a single
token in the current process, which is fine for scripts and tests but wrong
as soon as several processes or machines share one ``appid``: each would
refresh independently and invalidate the others' tokens. In production mode
it says so through :mod:`logging` every time it stores a token. Deployments
with more than one worker should implement :class:`CredentialStorage` on top
of a shared store (Redis, a database row, ...) and add their own
single-flight coordination there.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from wechatapi.models import Credential

logger = logging.getLogger(__name__)

ENVIRONMENT_VARIABLE = "WECHATAPI_ENV"


class CredentialStorage(ABC):
    """Where issued access tokens live between requests."""

    @abstractmethod
    async def get(self, principal_id: str) -> Optional[Credential]:
        """Return the stored credential for *principal_id*, or ``None``."""
        ...

    @abstractmethod
    async def save(self, credential: Credential) -> None:
        """Store *credential*, replacing any previous one for the same principal."""
        ...


class MemoryCredentialStorage(CredentialStorage):
    """Single in-process slot. Not safe for multi-process deployments.

    Args:
        production: Emit a warning on every save. Defaults to
            ``WECHATAPI_ENV == "production"``.
    """

    def __init__(self, production: Optional[bool] = None) -> None:
        if production is None:
            production = os.environ.get(ENVIRONMENT_VARIABLE, "").lower() == "production"
        self._production = production
        self._slot: Optional[Credential] = None

    async def get(self, principal_id: str) -> Optional[Credential]:
        if self._slot is None or self._slot.principal_id != principal_id:
            return None
        return self._slot

    async def save(self, credential: Credential) -> None:
        self._slot = credential
        if self._production:
            logger.warning(
                "Don't save token in memory when running in a cluster or on "
                "multiple machines (appid %s)",
                credential.principal_id,
            )
