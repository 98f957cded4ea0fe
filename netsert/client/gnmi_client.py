"""gNMI protocol client using pygnmi.

Implements ``ProtocolClient`` over a gNMI ``Get`` RPC with JSON-IETF
encoding.  Each ``fetch`` issues one request for one path and returns
the first update of the first notification.

Requires:
    - pygnmi
    - grpcio (installed with pygnmi)

Usage::

    info = ConnectionInfo(address="spine1:6030", username="admin", password="admin")
    with GnmiClient(info) as client:
        result = client.fetch("/system/state/hostname")
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, wait
from typing import Any

from ..core.exceptions import ConnectError, FetchError
from ..core.path import parse_path
from ..core.value import TypedValue
from .base_client import ConnectionInfo, FetchResult, ProtocolClient

logger = logging.getLogger(__name__)

GNMI_DEFAULT_PORT = 6030
GNMI_ENCODING = "json_ietf"

# Longest wait between checks of the cancel event while a Get is in flight.
POLL_INTERVAL = 0.05

# Fallback for errors that carry no gRPC status, matched against the message.
NOT_FOUND_MARKERS = ("NotFound", "NOT_FOUND", "not found")


def split_address(address: str, default_port: int = GNMI_DEFAULT_PORT) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into a host and port.

    Args:
        address: Address string; the port is optional.
        default_port: Port used when none is given.

    Returns:
        ``(host, port)`` tuple.

    Raises:
        ConnectError: If the port is not an integer.

    """
    host, port = address, ""
    if address.startswith("["):
        end = address.find("]")
        host = address[1:end]
        port = address[end + 2 :] if address[end + 1 : end + 2] == ":" else ""
    elif address.count(":") == 1:
        host, port = address.split(":", 1)
    if not port:
        return host, default_port
    try:
        return host, int(port)
    except ValueError:
        raise ConnectError(f"Invalid port '{port}'", device=address) from None


def rpc_status(exc: BaseException | None) -> Any:
    """Return the ``grpc.StatusCode`` carried by *exc*, or ``None``.

    pygnmi raises ``gNMIException`` with the ``grpc.RpcError`` kept in
    ``orig_exc``; a bare ``RpcError`` is accepted too.
    """
    import grpc

    rpc_error = getattr(exc, "orig_exc", None) or exc
    code = getattr(rpc_error, "code", None)
    if not callable(code):
        return None
    status = code()
    return status if isinstance(status, grpc.StatusCode) else None


def is_not_found(exc: BaseException) -> bool:
    """Report whether *exc* means the path holds no data.

    The gRPC status decides; errors without one fall back to the
    message text.
    """
    status = rpc_status(exc)
    if status is not None:
        return status.name == "NOT_FOUND"
    message = str(exc)
    return any(marker in message for marker in NOT_FOUND_MARKERS)


class GnmiClient(ProtocolClient):
    """gNMI client backed by ``pygnmi.client.gNMIclient``.

    Plaintext sessions are used when ``insecure`` is set; otherwise TLS
    is negotiated without certificate verification.

    Args:
        info: Connection parameters for the target device.

    """

    def __init__(self, info: ConnectionInfo) -> None:
        """Initialize the gNMI client with connection parameters."""
        super().__init__(info)
        self._session: Any = None  # pygnmi.client.gNMIclient instance

    # -- Connection lifecycle -----------------------------------------------

    def connect(self) -> None:
        """Open a gRPC channel to the device.

        Raises:
            ConnectError: If the channel cannot be established.

        """
        host, port = split_address(self._info.address)
        try:
            from pygnmi.client import gNMIclient  # type: ignore[import-untyped]

            session = gNMIclient(
                target=(host, port),
                username=self._info.username or None,
                password=self._info.password or None,
                insecure=self._info.insecure,
                skip_verify=not self._info.insecure,
                gnmi_timeout=self._info.timeout,
            )
            session.connect()
        except ImportError:
            raise ConnectError(
                "pygnmi is not installed",
                device=self.address,
            ) from None
        except Exception as exc:
            raise ConnectError(
                f"Failed to connect: {exc}",
                device=self.address,
                details={"insecure": self._info.insecure},
            ) from exc

        self._session = session
        self._connected = True
        self._logger.info("Connected to %s", self.address)

    def close(self) -> None:
        """Close the gRPC channel.  Idempotent."""
        if self._session is not None:
            try:
                self._session.close()
            except Exception:
                self._logger.debug("Ignoring error during close", exc_info=True)
            finally:
                self._session = None
                self._connected = False
                self._logger.info("Disconnected from %s", self.address)

    # -- Data collection ----------------------------------------------------

    def fetch(
        self,
        path: str,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FetchResult:
        """Issue a gNMI Get for a single path.

        pygnmi's ``get`` takes no deadline, so the request runs on a
        daemon thread while the caller waits for it in short slices.
        The wait ends when the response arrives, when *timeout* elapses
        or when *cancel_event* is set.  An abandoned request finishes
        or fails on its own once the channel is closed.

        Args:
            path: Canonical path string.
            timeout: Seconds to wait for the response; ``None`` waits
                until the response arrives or the call is cancelled.
            cancel_event: Checked before the request is sent and between
                wait slices.

        Returns:
            The first update value, or a missing result when the device
            reports not-found or returns no updates.

        Raises:
            FetchError: On timeout, cancellation or any other RPC failure.

        """
        self._ensure_connected()
        if cancel_event is not None and cancel_event.is_set():
            raise FetchError("fetch cancelled", device=self.address, details={"path": path})

        canonical = str(parse_path(path))
        future = self._start_get(canonical)
        self._await(future, canonical, timeout, cancel_event)
        try:
            response = future.result()
        except Exception as exc:
            if is_not_found(exc):
                self._logger.debug("Path %s not found on %s", canonical, self.address)
                return FetchResult.missing()
            raise FetchError(
                f"get failed: {exc}",
                device=self.address,
                details={"path": canonical, "timeout": timeout},
            ) from exc

        return self._first_update(response)

    # -- Internal helpers ---------------------------------------------------

    def _start_get(self, canonical: str) -> Future[Any]:
        """Run the blocking Get on a daemon thread and return its future."""
        future: Future[Any] = Future()
        session = self._session

        def call() -> None:
            future.set_running_or_notify_cancel()
            try:
                future.set_result(session.get(path=[canonical], encoding=GNMI_ENCODING))
            except Exception as exc:
                future.set_exception(exc)

        threading.Thread(target=call, name=f"gnmi-get-{self.address}", daemon=True).start()
        return future

    def _await(
        self,
        future: Future[Any],
        canonical: str,
        timeout: float | None,
        cancel_event: threading.Event | None,
    ) -> None:
        """Block until *future* completes, *timeout* lapses or the call is cancelled."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while not future.done():
            if cancel_event is not None and cancel_event.is_set():
                raise FetchError(
                    "fetch cancelled", device=self.address, details={"path": canonical}
                )
            slice_ = POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise FetchError(
                        f"get timed out after {timeout:.3g}s",
                        device=self.address,
                        details={"path": canonical, "timeout": timeout},
                    )
                slice_ = min(slice_, remaining)
            wait([future], timeout=slice_)

    @staticmethod
    def _first_update(response: Any) -> FetchResult:
        """Pull the first update out of a decoded Get response."""
        if not isinstance(response, dict):
            return FetchResult.missing()
        notifications = response.get("notification") or []
        if not notifications:
            return FetchResult.missing()
        updates = notifications[0].get("update") or []
        if not updates:
            return FetchResult.missing()
        return FetchResult(value=TypedValue.from_python(updates[0].get("val")), exists=True)
