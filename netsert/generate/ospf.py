"""OSPF adjacency assertions."""

from __future__ import annotations

from ..client.base_client import ProtocolClient
from ..core.assertion import Assertion
from .base import (
    NOT_CONFIGURED_MARKERS,
    NOT_CONFIGURED_STATUSES,
    GenerateOptions,
    Generator,
    equals,
    openconfig_get,
    openconfig_list,
)

AREAS_PATH = (
    "/network-instances/network-instance[name=default]"
    "/protocols/protocol[identifier=OSPF][name=OSPF]/ospf/areas"
)


class OspfGenerator(Generator):
    """Assert the adjacency state of every OSPF neighbor in every area."""

    name = "ospf"
    description = "Generate assertions for OSPF neighbor states"

    # Some devices reject the OSPF path outright when OSPF is not configured.
    ignore_statuses = (*NOT_CONFIGURED_STATUSES, "INVALID_ARGUMENT")
    ignore_errors = (*NOT_CONFIGURED_MARKERS, "path invalid", "InvalidArgument")

    def generate(self, client: ProtocolClient, options: GenerateOptions) -> list[Assertion]:
        data = self.query(client, AREAS_PATH)
        assertions: list[Assertion] = []

        for area in openconfig_list(data, "area"):
            area_id = str(area.get("identifier") or "")
            for interface in openconfig_list(openconfig_get(area, "interfaces"), "interface"):
                interface_id = str(interface.get("id") or "")
                neighbors = openconfig_list(openconfig_get(interface, "neighbors"), "neighbor")
                for neighbor in neighbors:
                    state = openconfig_get(neighbor, "state") or {}
                    adjacency = str(state.get("adjacency-state") or "")
                    if not adjacency:
                        continue
                    neighbor_id = str(state.get("neighbor-id") or neighbor.get("neighbor-id") or "")
                    assertions.append(
                        equals(
                            f"OSPF neighbor {neighbor_id} is {adjacency}",
                            f"ospf[default]/areas/area[identifier={area_id}]"
                            f"/interfaces/interface[id={interface_id}]"
                            f"/neighbors/neighbor[neighbor-id={neighbor_id}]/state/adjacency-state",
                            adjacency,
                        )
                    )

        return assertions
