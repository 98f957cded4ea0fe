"""Protocol client implementations.

Each client subclasses ``ProtocolClient`` and wraps a transport library
(pygnmi for gNMI).  The ``ClientFactory`` creates the correct client
instance based on the transport named in the connection parameters.
"""

from .base_client import ConnectionInfo, FetchResult, ProtocolClient
from .client_factory import ClientFactory
from .gnmi_client import GnmiClient

__all__ = [
    "ClientFactory",
    "ConnectionInfo",
    "FetchResult",
    "GnmiClient",
    "ProtocolClient",
]
