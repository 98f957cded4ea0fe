"""Abstract base class for path-fetching protocol clients.

Defines the contract the runner and generators depend on: open one
session to a device, fetch single paths over it, close it.  Concrete
clients wrap a transport library; the runner never touches the wire.

Usage::

    with GnmiClient(info) as client:
        result = client.fetch("/system/state/hostname", timeout=10.0)
        print(extract_value(result.value), result.exists)
"""

from __future__ import annotations

import abc
import logging
import threading
from dataclasses import dataclass, replace

from ..core.exceptions import ConnectError
from ..core.value import TypedValue

logger = logging.getLogger(__name__)

DEFAULT_TRANSPORT = "gnmi"
DEFAULT_CONNECT_TIMEOUT = 10.0

# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConnectionInfo:
    """Immutable connection parameters for one target.

    Attributes:
        address: ``host:port`` of the management endpoint.
        username: Login username (may be empty).
        password: Login password (may be empty).
        insecure: Use a plaintext session instead of TLS.
        timeout: Connect timeout in seconds.
        transport: Client registry key (``gnmi`` by default).

    """

    address: str
    username: str = ""
    password: str = ""
    insecure: bool = False
    timeout: float = DEFAULT_CONNECT_TIMEOUT
    transport: str = DEFAULT_TRANSPORT

    def with_defaults(self, username: str, password: str, insecure: bool) -> ConnectionInfo:
        """Fill empty credential fields from defaults.

        Values already set always win; ``insecure`` can only be switched
        on by the defaults, never off.
        """
        return replace(
            self,
            username=self.username or username,
            password=self.password or password,
            insecure=self.insecure or insecure,
        )


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a single path fetch.

    Attributes:
        value: The typed value, or ``None`` when the path has no data.
        exists: Whether the path resolved on the device.

    """

    value: TypedValue | None
    exists: bool

    @classmethod
    def missing(cls) -> FetchResult:
        """Return the result for a path that does not exist."""
        return cls(value=None, exists=False)


# ---------------------------------------------------------------------------
# Abstract base client
# ---------------------------------------------------------------------------


class ProtocolClient(abc.ABC):
    """Abstract base class for all protocol clients.

    Subclasses **must** implement ``connect``, ``fetch`` and ``close``.
    One instance holds one session and is owned by a single target's
    processing; ``fetch`` may be called from several threads at once.

    The client supports context-manager usage for automatic connect/close::

        with SomeClient(info) as client:
            client.fetch("/interfaces")

    Args:
        info: Connection parameters for the target device.

    """

    def __init__(self, info: ConnectionInfo) -> None:
        """Initialize the client with connection parameters."""
        self._info = info
        self._connected: bool = False
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    # -- Properties ---------------------------------------------------------

    @property
    def address(self) -> str:
        """Return the address of the managed device."""
        return self._info.address

    @property
    def info(self) -> ConnectionInfo:
        """Return the connection parameters."""
        return self._info

    @property
    def is_connected(self) -> bool:
        """Return ``True`` if the client currently holds an open session."""
        return self._connected

    # -- Context manager ----------------------------------------------------

    def __enter__(self) -> ProtocolClient:
        """Open a session upon entering a ``with`` block."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Ensure the session is closed when leaving a ``with`` block."""
        try:
            self.close()
        except Exception:
            self._logger.exception("Error during close in __exit__")

    # -- Abstract methods ---------------------------------------------------

    @abc.abstractmethod
    def connect(self) -> None:
        """Establish a session to the device.

        Raises:
            ConnectError: If the session cannot be established.

        """

    @abc.abstractmethod
    def fetch(
        self,
        path: str,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FetchResult:
        """Fetch the value at a single canonical path.

        Implementations should return promptly once *cancel_event* is set.

        Args:
            path: Canonical path string.
            timeout: Per-request timeout in seconds.
            cancel_event: Cooperative cancellation signal.

        Returns:
            The typed value and whether the path exists.

        Raises:
            FetchError: If the request fails for any reason other than the
                path being absent.

        """

    @abc.abstractmethod
    def close(self) -> None:
        """Close the session.

        Implementations must be idempotent: calling ``close`` on an
        already-closed session is a no-op.
        """

    # -- Internal helpers ---------------------------------------------------

    def _ensure_connected(self) -> None:
        """Raise if no session is open."""
        if not self._connected:
            raise ConnectError(
                "Not connected, call connect() first",
                device=self.address,
            )
