"""Factory for creating protocol client instances.

Uses the Factory Pattern to instantiate the correct ``ProtocolClient``
subclass based on the ``transport`` field of a ``ConnectionInfo``.  The
registry is an explicit mapping owned by each factory instance, so tests
and embedders can substitute their own clients without global state.

Usage::

    factory = ClientFactory()
    client = factory.create(ConnectionInfo(address="leaf1:6030"))

    # Custom transport
    factory = ClientFactory(custom_clients={"stub": StubClient})
"""

from __future__ import annotations

import logging
from ..core.exceptions import ConnectError
from .base_client import ConnectionInfo, ProtocolClient
from .gnmi_client import GnmiClient

logger = logging.getLogger(__name__)

TRANSPORT_CLIENT_MAP: dict[str, type[ProtocolClient]] = {
    "gnmi": GnmiClient,
}


class ClientFactory:
    """Factory for creating ``ProtocolClient`` instances.

    Maintains a registry of transport names to client classes.

    Args:
        custom_clients: Optional mapping of additional transport names to
            client classes.

    """

    def __init__(
        self,
        custom_clients: dict[str, type[ProtocolClient]] | None = None,
    ) -> None:
        """Initialize the factory with an optional set of custom client mappings."""
        self._registry: dict[str, type[ProtocolClient]] = dict(TRANSPORT_CLIENT_MAP)
        if custom_clients:
            self._registry.update({k.lower(): v for k, v in custom_clients.items()})
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def create(self, info: ConnectionInfo) -> ProtocolClient:
        """Create an unconnected client for the given connection info.

        Args:
            info: Connection parameters; ``info.transport`` selects the class.

        Returns:
            An unconnected ``ProtocolClient`` subclass instance.

        Raises:
            ConnectError: If the transport is not recognized.

        """
        client_cls = self._registry.get(info.transport.lower())
        if client_cls is None:
            supported = ", ".join(sorted(self._registry.keys()))
            raise ConnectError(
                f"Unsupported transport '{info.transport}'. Supported: {supported}",
                device=info.address,
            )
        self._logger.debug("Creating %s for %s", client_cls.__name__, info.address)
        return client_cls(info)

    def connect(self, info: ConnectionInfo) -> ProtocolClient:
        """Create a client and open its session.

        Raises:
            ConnectError: If the transport is unknown or connecting fails.

        """
        client = self.create(info)
        client.connect()
        return client

