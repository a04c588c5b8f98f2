"""Capability registry -- how endpoint modules attach operations to the client.

Endpoint wrappers (menus, media, messaging, payments, ...) live outside the
core. Each one is a plain mapping from operation name to an ``async`` function
whose first argument is the :class:`~wechatapi.client.Client`::

    async def get_menu(client):
        url = await client.authorized_url("menu/get")
        return await client.request(url)

    Client.extend({"get_menu": get_menu})
    menu = await client.get_menu()

Registration is checked for collisions: a name that is already a client
attribute or an earlier capability raises
:class:`~wechatapi.exceptions.DuplicateCapabilityError` and nothing from the
offending mapping is registered.

Third-party packages can also register at install time through the
``wechatapi.capabilities`` entry-point group; :func:`discover_capabilities`
loads them::

    [project.entry-points."wechatapi.capabilities"]
    menu = "wechatapi_menu:CAPABILITIES"
"""

from __future__ import annotations

import importlib.metadata
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, Optional

from wechatapi.exceptions import CapabilityError, DuplicateCapabilityError

if TYPE_CHECKING:
    from wechatapi.client import Client

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "wechatapi.capabilities"
"""The entry-point group name used for capability discovery."""


class CapabilityRegistry:
    """Named operations shared by every client instance.

    Example::

        registry = CapabilityRegistry()
        registry.register({"get_menu": get_menu})
        assert "get_menu" in registry
    """

    def __init__(self) -> None:
        self._operations: dict[str, Callable[..., Any]] = {}

    def register(
        self,
        mapping: Mapping[str, Callable[..., Any]],
        reserved: Iterable[str] = (),
    ) -> None:
        """Add every operation in *mapping*, or none of them.

        Args:
            mapping: Operation name to callable.
            reserved: Names that may not be used, typically the attributes of
                the class the operations are composed into.

        Raises:
            DuplicateCapabilityError: If a name is reserved or already
                registered.
            CapabilityError: If a value is not callable.
        """
        reserved_names = set(reserved)
        for name, operation in mapping.items():
            if name in reserved_names or name in self._operations:
                raise DuplicateCapabilityError(name)
            if not callable(operation):
                raise CapabilityError(f"Capability '{name}' is not callable")
        self._operations.update(mapping)

    def unregister(self, name: str) -> None:
        """Remove a registered operation.

        Raises:
            CapabilityError: If *name* is not registered.
        """
        try:
            del self._operations[name]
        except KeyError:
            raise CapabilityError(f"Capability '{name}' is not registered") from None

    def get(self, name: str) -> Optional[Callable[..., Any]]:
        """Return the operation registered under *name*, or ``None``."""
        return self._operations.get(name)

    def names(self) -> list[str]:
        """Return the registered operation names, sorted."""
        return sorted(self._operations)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __len__(self) -> int:
        return len(self._operations)


def discover_capabilities(client_cls: Optional[type[Client]] = None) -> list[str]:
    """Load capability mappings published under :data:`ENTRY_POINT_GROUP`.

    Each entry point must resolve to a mapping, which is passed to
    ``client_cls.extend``. Entry points that fail to import or do not resolve
    to a mapping are logged as warnings and skipped. Name collisions are
    configuration errors and propagate.

    Args:
        client_cls: The client class to extend. Defaults to
            :class:`~wechatapi.client.Client`.

    Returns:
        The names of the entry points that were registered.
    """
    if client_cls is None:
        from wechatapi.client import Client

        client_cls = Client

    loaded: list[str] = []
    for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
        try:
            mapping = ep.load()
        except Exception as exc:
            logger.warning("Failed to load capabilities '%s': %s", ep.name, exc)
            continue
        if not isinstance(mapping, Mapping):
            logger.warning(
                "Capabilities '%s' resolved to %s, expected a mapping",
                ep.name,
                type(mapping).__name__,
            )
            continue
        client_cls.extend(mapping)
        loaded.append(ep.name)
        logger.info("Registered capabilities '%s': %s", ep.name, ", ".join(sorted(mapping)))
    return loaded
