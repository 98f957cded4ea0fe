"""Device inventory management.

Loads named groups of device addresses so assertion files can target
``@group`` instead of listing every host.  Two formats are accepted:

YAML::

    defaults:
      username: admin
      insecure: true
    groups:
      spines: [spine1:6030, spine2:6030]
      leaves: [leaf1:6030, leaf2:6030]
      fabric: ["@spines", "@leaves"]

Ansible-style INI::

    [spines]
    spine1 ansible_host=10.0.0.1:6030

    [fabric:children]
    spines

Usage::

    inventory = load("inventory.yaml")
    expanded = inventory.expand_groups(assertion_file, group_filter="spines")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from ..core.assertion import AssertionFile, Target
from ..core.exceptions import InventoryError

logger = logging.getLogger(__name__)

GROUP_PREFIX = "@"
MAX_REFERENCE_DEPTH = 10

DEFAULT_INVENTORY_FILES = (
    Path("inventory.yaml"),
    Path("inventory.yml"),
    Path("inventory.ini"),
    Path("inventory"),
    Path("hosts.yaml"),
    Path("hosts.yml"),
    Path("hosts"),
)


@dataclass
class InventoryDefaults:
    """Defaults applied to every inventory host.

    Attributes:
        username: Default login username.
        password: Default login password.
        insecure: Default plaintext flag.
        port: Port appended to members given without one (0 to leave as-is).

    """

    username: str = ""
    password: str = ""
    insecure: bool = False
    port: int = 0

    def address(self, host: str) -> str:
        """Return *host* with the default port applied when it has none."""
        if not self.port or ":" in host:
            return host
        return f"{host}:{self.port}"


@dataclass
class Inventory:
    """Named groups of device addresses.

    Attributes:
        groups: Group name to member addresses, in declaration order.
        defaults: Credential and port defaults.
        source: File the inventory was read from, if any.

    """

    groups: dict[str, list[str]] = field(default_factory=dict)
    defaults: InventoryDefaults = field(default_factory=InventoryDefaults)
    source: Path | None = None

    # -- Queries ------------------------------------------------------------

    def get_group(self, name: str) -> list[str] | None:
        """Return the members of a group, or ``None`` if it does not exist."""
        members = self.groups.get(name)
        return list(members) if members is not None else None

    def list_groups(self) -> list[str]:
        """Return all group names in declaration order."""
        return list(self.groups)

    # -- Expansion ----------------------------------------------------------

    def expand_references(self) -> None:
        """Replace ``@group`` members with the referenced group's members.

        Expansion repeats until nothing changes or ``MAX_REFERENCE_DEPTH``
        passes have run; references to unknown groups are left in place.
        """
        for _ in range(MAX_REFERENCE_DEPTH):
            changed = False
            for name, members in self.groups.items():
                expanded: list[str] = []
                for member in members:
                    ref = member[len(GROUP_PREFIX) :] if member.startswith(GROUP_PREFIX) else None
                    if ref is not None and ref in self.groups:
                        expanded.extend(self.groups[ref])
                        changed = True
                    else:
                        expanded.append(member)
                self.groups[name] = expanded
            if not changed:
                return
        logger.warning(
            "Group references still unresolved after %d passes; check for cycles",
            MAX_REFERENCE_DEPTH,
        )

    def expand_groups(
        self,
        assertion_file: AssertionFile,
        group_filter: str | None = None,
    ) -> AssertionFile:
        """Replace ``@group`` targets with one target per group member.

        Targets naming an unknown group are kept unchanged (connecting to
        them fails later).  With *group_filter*, only targets whose host is
        a member of that group survive.

        Args:
            assertion_file: The loaded assertion file.
            group_filter: Optional group to restrict targets to.

        Returns:
            A new ``AssertionFile``.

        """
        targets: list[Target] = []
        for target in assertion_file.targets:
            if not target.is_group_reference:
                targets.append(target)
                continue

            group = target.host[len(GROUP_PREFIX) :]
            members = self.get_group(group)
            if members is None:
                logger.warning("Group '%s' not found in inventory; keeping target as-is", group)
                targets.append(target)
                continue

            logger.debug("Expanded @%s to %d targets", group, len(members))
            targets.extend(replace(target, host=self.defaults.address(h)) for h in members)

        if group_filter:
            members = self.get_group(group_filter)
            if members is None:
                logger.warning("Filter group '%s' not found in inventory; not filtering", group_filter)
            else:
                allowed = {self.defaults.address(h) for h in members}
                targets = [t for t in targets if t.host in allowed]

        return AssertionFile(targets=tuple(targets))


# ---- Parsers ----


def parse_yaml(text: str) -> Inventory:
    """Parse the YAML inventory format.

    Raises:
        InventoryError: If the text is not valid YAML or is not a mapping.

    """
    import yaml  # type: ignore[import-untyped]

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise InventoryError(f"Invalid YAML inventory: {exc}") from exc
    if not isinstance(raw, dict):
        raise InventoryError("YAML inventory must be a mapping")

    groups_raw = raw.get("groups") or {}
    if not isinstance(groups_raw, dict):
        raise InventoryError("'groups' must be a mapping of group name to host list")

    groups: dict[str, list[str]] = {}
    for name, members in groups_raw.items():
        if isinstance(members, str):
            members = [members]
        if members is not None and not isinstance(members, list):
            raise InventoryError(
                f"group '{name}' must be a list of hosts",
                details={"got": type(members).__name__},
            )
        groups[str(name)] = [str(m) for m in members or []]

    defaults_raw = raw.get("defaults") or {}
    if not isinstance(defaults_raw, dict):
        raise InventoryError("'defaults' must be a mapping")
    inventory = Inventory(
        groups=groups,
        defaults=InventoryDefaults(
            username=str(defaults_raw.get("username", "") or ""),
            password=str(defaults_raw.get("password", "") or ""),
            insecure=bool(defaults_raw.get("insecure", False)),
            port=_parse_port(defaults_raw.get("port")),
        ),
    )
    inventory.expand_references()
    return inventory


def _parse_port(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise InventoryError(f"invalid default port '{value}'") from None
    if not 0 <= port <= 65535:
        raise InventoryError(f"default port {port} out of range")
    return port


def _ini_host(line: str) -> str:
    """Extract the address from an INI host line, preferring ``ansible_host``."""
    fields = line.split()
    if not fields:
        return ""
    for item in fields[1:]:
        if item.startswith("ansible_host="):
            return item[len("ansible_host=") :]
    return fields[0]


def parse_ini(text: str) -> Inventory:
    """Parse an Ansible-style INI inventory.

    ``[group:children]`` entries become ``@child`` references; ``[group:vars]``
    sections are ignored.
    """
    groups: dict[str, list[str]] = {}
    current: str | None = None
    section_kind = ""

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", ";")):
            continue

        if line.startswith("[") and line.endswith("]"):
            current, _, section_kind = line[1:-1].partition(":")
            groups.setdefault(current, [])
            continue

        if current is None or section_kind == "vars":
            continue
        if section_kind == "children":
            groups[current].append(GROUP_PREFIX + line.split()[0])
            continue

        host = _ini_host(line)
        if host:
            groups[current].append(host)

    inventory = Inventory(groups=groups)
    inventory.expand_references()
    return inventory


def load(path: str | Path) -> Inventory:
    """Load an inventory file, trying YAML first and then INI.

    Raises:
        InventoryError: If the file cannot be read or neither format
            yields any groups.

    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InventoryError(f"read inventory: {exc}", details={"file": str(path)}) from exc

    errors: list[str] = []
    for parser in (parse_yaml, parse_ini):
        try:
            inventory = parser(text)
        except InventoryError as exc:
            logger.debug("%s could not parse %s", parser.__name__, path, exc_info=True)
            errors.append(exc.message)
            continue
        if inventory.groups:
            inventory.source = path
            logger.info("Loaded inventory %s (%d groups)", path, len(inventory.groups))
            return inventory

    details = {"file": str(path)}
    if errors:
        details["errors"] = "; ".join(errors)
    raise InventoryError("unable to parse inventory (tried YAML and INI)", details=details)


def auto_discover(candidates: tuple[Path, ...] = DEFAULT_INVENTORY_FILES) -> Inventory | None:
    """Load the first parseable inventory from the standard locations.

    Returns:
        The inventory, or ``None`` if no candidate exists or parses.

    """
    for candidate in candidates:
        if not candidate.is_file():
            continue
        try:
            return load(candidate)
        except InventoryError:
            logger.debug("Skipping unparseable inventory %s", candidate, exc_info=True)
    return None
