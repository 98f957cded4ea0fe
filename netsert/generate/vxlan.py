"""VXLAN VTEP and VNI mapping assertions (Arista EOS models)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..client.base_client import ProtocolClient
from ..core.assertion import Assertion
from ..core.exceptions import GeneratorError
from .base import GenerateOptions, Generator, equals, openconfig_get, openconfig_list

VXLAN_INTERFACE = "Vxlan1"
VXLAN_PATH = f"/interfaces/interface[name={VXLAN_INTERFACE}]"


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class VxlanGenerator(Generator):
    """Assert the VTEP source interface and the VLAN/VRF to VNI maps."""

    name = "vxlan"
    description = "Generate assertions for VXLAN interface, VTEP, and VNI mappings"

    def generate(self, client: ProtocolClient, options: GenerateOptions) -> list[Assertion]:
        data = self.query(client, VXLAN_PATH)
        if data is None:
            return []

        # Some devices wrap the single interface in its list.
        wrapped = openconfig_list(data, "interface")
        if wrapped:
            data = wrapped[0]
        if not isinstance(data, Mapping):
            raise GeneratorError(
                "unexpected VXLAN payload",
                device=client.address,
                details={"type": type(data).__name__},
            )

        vxlan = openconfig_get(data, "arista-vxlan")
        if not isinstance(vxlan, Mapping):
            return []

        prefix = f"interfaces/interface[name={VXLAN_INTERFACE}]/arista-vxlan"
        assertions: list[Assertion] = []

        state = vxlan.get("state") or {}
        source = str(state.get("src-ip-intf") or "")
        if source:
            assertions.append(
                equals(f"VXLAN VTEP source is {source}", f"{prefix}/state/src-ip-intf", source)
            )

        vlan_vnis = []
        for entry in openconfig_list(vxlan.get("vlan-to-vnis"), "vlan-to-vni"):
            vlan = _as_int(entry.get("vlan"))
            vni = _as_int((entry.get("state") or {}).get("vni"))
            if vlan > 0 and vni > 0:
                vlan_vnis.append((vlan, vni))
        for vlan, vni in sorted(vlan_vnis):
            assertions.append(
                equals(
                    f"VLAN {vlan} maps to VNI {vni}",
                    f"{prefix}/vlan-to-vnis/vlan-to-vni[vlan={vlan}]/state/vni",
                    str(vni),
                )
            )

        vrf_vnis = []
        for entry in openconfig_list(vxlan.get("vrf-to-vnis"), "vrf-to-vni"):
            vrf = str(entry.get("vrf") or "")
            vni = _as_int((entry.get("state") or {}).get("vni"))
            if vrf and vni > 0:
                vrf_vnis.append((vrf, vni))
        for vrf, vni in sorted(vrf_vnis):
            assertions.append(
                equals(
                    f"VRF {vrf} maps to L3VNI {vni}",
                    f"{prefix}/vrf-to-vnis/vrf-to-vni[vrf={vrf}]/state/vni",
                    str(vni),
                )
            )

        return assertions
