"""Interface operational status assertions."""

from __future__ import annotations

from ..client.base_client import ProtocolClient
from ..core.assertion import Assertion
from .base import GenerateOptions, Generator, equals, openconfig_get, openconfig_list

INTERFACES_PATH = "/interfaces"

# Management and internal interfaces are not asserted.
SKIPPED_PREFIXES = ("Management", "Loopback", "Null", "Cpu", "Vxlan", "ma")


class InterfacesGenerator(Generator):
    """Assert the current oper-status of every admin-enabled interface."""

    name = "interfaces"
    description = "Generate assertions for interface oper-status"

    def generate(self, client: ProtocolClient, options: GenerateOptions) -> list[Assertion]:
        data = self.query(client, INTERFACES_PATH)
        assertions: list[Assertion] = []

        for interface in openconfig_list(data, "interface"):
            state = openconfig_get(interface, "state") or {}
            name = str(interface.get("name") or state.get("name") or "")
            if not name or name.startswith(SKIPPED_PREFIXES):
                continue
            if state.get("admin-status") == "DOWN":
                continue

            oper_status = str(state.get("oper-status", ""))
            assertions.append(
                equals(
                    f"{name} is {oper_status}",
                    f"interface[{name}]/state/oper-status",
                    oper_status,
                )
            )

        return assertions
