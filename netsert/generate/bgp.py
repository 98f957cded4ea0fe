"""BGP neighbor session and address-family assertions."""

from __future__ import annotations

from typing import Any

from ..client.base_client import ProtocolClient
from ..core.assertion import Assertion
from .base import GenerateOptions, Generator, equals, openconfig_get, openconfig_list

NEIGHBORS_PATH = (
    "/network-instances/network-instance[name=default]"
    "/protocols/protocol[identifier=BGP][name=BGP]/bgp/neighbors"
)


def normalize_afi_safi(name: str) -> str:
    """Strip a module prefix such as ``openconfig-bgp-types:``."""
    return name.rsplit(":", 1)[-1]


class BgpGenerator(Generator):
    """Assert every neighbor's session state and its active AFI-SAFIs."""

    name = "bgp"
    description = "Generate assertions for BGP neighbor states and AFI-SAFI"

    def generate(self, client: ProtocolClient, options: GenerateOptions) -> list[Assertion]:
        data = self.query(client, NEIGHBORS_PATH)
        assertions: list[Assertion] = []

        for neighbor in openconfig_list(data, "neighbor"):
            state = openconfig_get(neighbor, "state") or {}
            address = str(neighbor.get("neighbor-address") or state.get("neighbor-address") or "")
            if not address:
                continue
            session_state = str(state.get("session-state", ""))
            prefix = f"bgp[default]/neighbors/neighbor[neighbor-address={address}]"

            assertions.append(
                equals(
                    f"BGP peer {address} is {session_state}",
                    f"{prefix}/state/session-state",
                    session_state,
                )
            )

            for afi_name, active in self._afi_safis(neighbor):
                if not active:
                    continue
                assertions.append(
                    equals(
                        f"BGP peer {address} AFI {afi_name} is active",
                        f"{prefix}/afi-safis/afi-safi[afi-safi-name={afi_name}]/state/active",
                        "true",
                    )
                )

        return assertions

    @staticmethod
    def _afi_safis(neighbor: dict[str, Any]) -> list[tuple[str, bool]]:
        families: list[tuple[str, bool]] = []
        for afi in openconfig_list(openconfig_get(neighbor, "afi-safis"), "afi-safi"):
            state = openconfig_get(afi, "state") or {}
            name = normalize_afi_safi(str(afi.get("afi-safi-name") or ""))
            if not name:
                name = normalize_afi_safi(str(state.get("afi-safi-name") or ""))
            if name:
                families.append((name, state.get("active") is True))
        return families
