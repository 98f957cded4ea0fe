"""LLDP neighbor assertions."""

from __future__ import annotations

from ..client.base_client import ProtocolClient
from ..core.assertion import Assertion, Predicate, PredicateKind
from .base import GenerateOptions, Generator, openconfig_get, openconfig_list

LLDP_INTERFACES_PATH = "/lldp/interfaces"

SKIPPED_PREFIXES = (
    "Management",
    "mgmt",
    "ma",
    "fxp",  # Juniper management
    "em",  # Juniper internal
    "vme",
)


class LldpGenerator(Generator):
    """Assert the remote system seen on each local interface.

    Only the first neighbor per interface is asserted, using ``contains`` so
    a domain suffix on the remote name does not break the check.
    """

    name = "lldp"
    description = "Generate assertions for LLDP neighbor relationships"

    def generate(self, client: ProtocolClient, options: GenerateOptions) -> list[Assertion]:
        data = self.query(client, LLDP_INTERFACES_PATH)
        assertions: list[Assertion] = []
        seen: set[str] = set()

        for interface in openconfig_list(data, "interface"):
            local = str(interface.get("name") or "")
            if not local or local.startswith(SKIPPED_PREFIXES) or local in seen:
                continue

            for neighbor in openconfig_list(openconfig_get(interface, "neighbors"), "neighbor"):
                state = openconfig_get(neighbor, "state") or {}
                remote = str(state.get("system-name") or "")
                if not remote:
                    continue
                seen.add(local)
                assertions.append(
                    Assertion(
                        path=(
                            f"lldp/interfaces/interface[name={local}]"
                            "/neighbors/neighbor/state/system-name"
                        ),
                        predicate=Predicate(PredicateKind.CONTAINS, remote),
                        name=f"LLDP {local} connects to {remote}",
                    )
                )
                break

        return assertions
