"""Shared pytest fixtures for the netsert test suite.

Provides an in-memory stub network and protocol client, sample
assertion files, and helpers for writing YAML fixtures to disk.
"""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from typing import Any

import grpc
import pytest
from netsert.client.base_client import ConnectionInfo, FetchResult, ProtocolClient
from netsert.client.client_factory import ClientFactory
from netsert.core.assertion import Assertion, AssertionFile, Predicate, PredicateKind, Target
from netsert.core.exceptions import ConnectError, FetchError
from netsert.core.value import TypedValue

# ---------------------------------------------------------------------------
# Stub network
# ---------------------------------------------------------------------------


class StubNetwork:
    """In-memory device state shared by every ``StubClient`` it creates.

    Attributes:
        devices: Address to ``{canonical path: value}``.  A value that is an
            ``Exception`` is raised from ``fetch``.
        unreachable: Addresses whose ``connect`` fails.
        delay: Seconds each fetch takes.
        connections: ``ConnectionInfo`` of every successful connect.
        closed: Addresses closed, in order.
        fetched: ``(address, path)`` of every fetch that started.
        timeouts: ``(address, path, timeout)`` passed to every fetch.
        max_in_flight: Peak concurrent fetches per address.
        max_open_sessions: Peak number of sessions open at once.

    """

    def __init__(self) -> None:
        self.devices: dict[str, dict[str, Any]] = {}
        self.unreachable: set[str] = set()
        self.delay = 0.0
        self.connections: list[ConnectionInfo] = []
        self.closed: list[str] = []
        self.fetched: list[tuple[str, str]] = []
        self._lock = threading.Lock()
        self._in_flight: dict[str, int] = {}
        self.max_in_flight: dict[str, int] = {}
        self.timeouts: list[tuple[str, str, float | None]] = []
        self._open_sessions = 0
        self.max_open_sessions = 0

    def add_device(self, address: str, values: dict[str, Any]) -> None:
        self.devices[address] = dict(values)

    def client_class(self) -> type[ProtocolClient]:
        network = self

        class StubClient(ProtocolClient):
            def connect(self) -> None:
                if self.address in network.unreachable:
                    raise ConnectError("connection refused", device=self.address)
                with network._lock:
                    network.connections.append(self.info)
                    network._open_sessions += 1
                    network.max_open_sessions = max(
                        network.max_open_sessions, network._open_sessions
                    )
                self._connected = True

            def fetch(
                self,
                path: str,
                timeout: float | None = None,
                cancel_event: threading.Event | None = None,
            ) -> FetchResult:
                self._ensure_connected()
                with network._lock:
                    network.timeouts.append((self.address, path, timeout))
                return network.fetch(self.address, path, cancel_event)

            def close(self) -> None:
                if self._connected:
                    self._connected = False
                    with network._lock:
                        network.closed.append(self.address)
                        network._open_sessions -= 1

        return StubClient

    def factory(self) -> ClientFactory:
        return ClientFactory(custom_clients={"gnmi": self.client_class()})

    def fetch(
        self,
        address: str,
        path: str,
        cancel_event: threading.Event | None,
    ) -> FetchResult:
        with self._lock:
            self.fetched.append((address, path))
            count = self._in_flight.get(address, 0) + 1
            self._in_flight[address] = count
            self.max_in_flight[address] = max(self.max_in_flight.get(address, 0), count)
        try:
            if self.delay:
                if cancel_event is not None:
                    if cancel_event.wait(self.delay):
                        raise FetchError("fetch cancelled", device=address)
                else:
                    time.sleep(self.delay)

            values = self.devices.get(address, {})
            if path not in values:
                return FetchResult.missing()
            value = values[path]
            if isinstance(value, Exception):
                raise value
            return FetchResult(value=TypedValue.from_python(value), exists=True)
        finally:
            with self._lock:
                self._in_flight[address] -= 1


@pytest.fixture
def network() -> StubNetwork:
    """An empty stub network."""
    return StubNetwork()


# ---------------------------------------------------------------------------
# gRPC failures
# ---------------------------------------------------------------------------


class RpcFailure(grpc.RpcError):
    """A completed RPC that ended with a non-OK status."""

    def __init__(self, status: grpc.StatusCode, details: str) -> None:
        super().__init__(details)
        self._status = status
        self._details = details

    def code(self) -> grpc.StatusCode:
        return self._status

    def details(self) -> str:
        return self._details


class GnmiError(Exception):
    """Shaped like ``pygnmi.client.gNMIException``."""

    def __init__(self, message: str, orig_exc: Exception | None = None) -> None:
        super().__init__(message)
        self.orig_exc = orig_exc


def rpc_failure(
    status: grpc.StatusCode, details: str, host: str = "spine1:6030"
) -> GnmiError:
    """Build the error pygnmi raises when a Get ends with *status*."""
    return GnmiError(f"GRPC ERROR Host: {host}, Error: {details}", RpcFailure(status, details))


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

OPER_STATUS = "/interfaces/interface[name=Ethernet1]/state/oper-status"
HOSTNAME = "/system/state/hostname"
IN_OCTETS = "/interfaces/interface[name=Ethernet1]/state/counters/in-octets"


@pytest.fixture
def spine_values() -> dict[str, Any]:
    """Device state for a healthy spine switch."""
    return {
        OPER_STATUS: "UP",
        HOSTNAME: "spine1",
        IN_OCTETS: 1000,
    }


@pytest.fixture
def spine_target() -> Target:
    """A target with pass, fail and error assertions."""
    return Target(
        host="spine1:6030",
        assertions=(
            Assertion(path=OPER_STATUS, predicate=Predicate(PredicateKind.EQUALS, "UP")),
            Assertion(path=HOSTNAME, predicate=Predicate(PredicateKind.EQUALS, "spine2")),
            Assertion(path="/does/not/exist", predicate=Predicate(PredicateKind.EQUALS, "x")),
        ),
    )


@pytest.fixture
def spine_file(spine_target: Target) -> AssertionFile:
    """A single-target assertion file."""
    return AssertionFile(targets=(spine_target,))


@pytest.fixture
def write_file(tmp_path: Path):
    """Write text to a file under ``tmp_path`` and return its path."""

    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


# ---------------------------------------------------------------------------
# Pytest configuration
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless a live gNMI target is configured."""
    if os.environ.get("NETSERT_GNMI_TARGET"):
        return
    skip = pytest.mark.skip(reason="set NETSERT_GNMI_TARGET to run integration tests")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)
