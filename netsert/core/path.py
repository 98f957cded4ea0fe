"""Hierarchical gNMI path addressing.

Parses string paths such as
``/interfaces/interface[name=Ethernet1]/state/oper-status`` into an
immutable ``Path`` of ``PathElement`` objects, and converts between the
abbreviated short forms used in assertion files and canonical OpenConfig
paths.

Usage::

    path = parse_path("/interfaces/interface[name=Ethernet1]/state")
    canonical = expand_short_path("bgp[default]/global/state/as")
    short = compact_path(canonical)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .exceptions import MalformedPathError

logger = logging.getLogger(__name__)

SEPARATOR = "/"
ROOT = "/"


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PathElement:
    """A single named step in a path with optional list keys.

    Attributes:
        name: Schema node name (never empty).
        keys: Read-only mapping of key name to key value.  Comparison and
            hashing ignore the order in which keys were declared.

    """

    name: str
    keys: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", MappingProxyType(dict(self.keys)))

    def __hash__(self) -> int:
        return hash((self.name, frozenset(self.keys.items())))

    def __str__(self) -> str:
        """Render the element in canonical ``name[k=v]`` form."""
        return self.name + "".join(f"[{k}={v}]" for k, v in self.keys.items())


@dataclass(frozen=True)
class Path:
    """An ordered, immutable sequence of path elements.

    Attributes:
        elements: The elements from the root down.

    """

    elements: tuple[PathElement, ...] = ()

    @classmethod
    def parse(cls, path: str) -> Path:
        """Parse a string path.  See ``parse_path``."""
        return parse_path(path)

    def __str__(self) -> str:
        """Render the canonical, root-anchored path string."""
        return ROOT + SEPARATOR.join(str(e) for e in self.elements)

    def __len__(self) -> int:
        return len(self.elements)


# ---------------------------------------------------------------------------
# Tokenizing and parsing
# ---------------------------------------------------------------------------


def tokenize(path: str) -> list[str]:
    """Split a path on separators that are outside bracketed key groups.

    Empty segments (from a leading or doubled separator) are dropped.

    Args:
        path: Path string, canonical or short.

    Returns:
        Raw segments in order, e.g. ``["a[x=1/2]", "b"]`` for
        ``"a[x=1/2]/b"``.

    Raises:
        MalformedPathError: If brackets are unbalanced.

    """
    segments: list[str] = []
    current: list[str] = []
    depth = 0

    for char in path:
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth < 0:
                raise MalformedPathError(
                    "Unbalanced ']' in path",
                    details={"path": path},
                )
        elif char == SEPARATOR and depth == 0:
            if current:
                segments.append("".join(current))
                current = []
            continue
        current.append(char)

    if depth != 0:
        raise MalformedPathError("Unclosed '[' in path", details={"path": path})

    if current:
        segments.append("".join(current))
    return segments


def parse_element(segment: str) -> PathElement:
    """Parse one path segment such as ``interface[name=Ethernet1]``.

    Everything before the first ``[`` is the element name; the remainder
    must be one or more complete ``[key=value]`` groups.  Values are taken
    verbatim after the first ``=`` and may contain separators.

    Raises:
        MalformedPathError: On an unclosed bracket, a group without ``=``,
            an empty name or key, text outside a group, or a repeated key.

    """
    bracket_start = segment.find("[")
    if bracket_start == -1:
        if not segment:
            raise MalformedPathError("Empty path element")
        return PathElement(name=segment)

    name = segment[:bracket_start]
    if not name:
        raise MalformedPathError(
            "Path element has keys but no name",
            details={"segment": segment},
        )

    keys: dict[str, str] = {}
    rest = segment[bracket_start:]
    while rest:
        if rest[0] != "[":
            raise MalformedPathError(
                "Unexpected text after key group",
                details={"segment": segment, "text": rest},
            )
        end = rest.find("]")
        if end == -1:
            raise MalformedPathError(
                "Unclosed bracket in path segment",
                details={"segment": segment},
            )
        group = rest[1:end]
        key, sep, value = group.partition("=")
        if not sep:
            raise MalformedPathError(
                "Invalid key-value pair",
                details={"segment": segment, "group": group},
            )
        if not key:
            raise MalformedPathError(
                "Empty key name",
                details={"segment": segment, "group": group},
            )
        if key in keys:
            raise MalformedPathError(
                f"Duplicate key '{key}'",
                details={"segment": segment},
            )
        keys[key] = value
        rest = rest[end + 1 :]

    return PathElement(name=name, keys=keys)


def parse_path(path: str) -> Path:
    """Parse a string path into a ``Path``.

    Args:
        path: Path string; a leading separator is optional.

    Returns:
        The parsed ``Path``.  An empty string yields the root path.

    Raises:
        MalformedPathError: If any segment is malformed.

    """
    return Path(elements=tuple(parse_element(s) for s in tokenize(path)))


# ---------------------------------------------------------------------------
# Short path expansion and compaction
# ---------------------------------------------------------------------------


def _protocol_template(identifier: str) -> str:
    return (
        "/network-instances/network-instance[name={instance}]"
        f"/protocols/protocol[identifier={identifier}][name={identifier}]"
        f"/{identifier.lower()}/{{rest}}"
    )


@dataclass(frozen=True)
class PathShortcut:
    """One entry in the short path expansion table.

    Attributes:
        prefix: Literal prefix checked before the regex.
        pattern: Regex with ``instance`` and/or ``rest`` named groups.
        template: Expansion template using the same names.

    """

    prefix: str
    pattern: re.Pattern[str]
    template: str

    def expand(self, path: str) -> str | None:
        """Return the expansion of *path*, or ``None`` if it does not match."""
        if not path.startswith(self.prefix):
            return None
        match = self.pattern.match(path)
        if match is None:
            return None
        return self.template.format(**match.groupdict())


@dataclass(frozen=True)
class CompactionRule:
    """One entry in the canonical-to-short compaction table."""

    pattern: re.Pattern[str]
    template: str

    def compact(self, path: str) -> str | None:
        """Return the short form of *path*, or ``None`` if it does not match."""
        match = self.pattern.match(path)
        if match is None:
            return None
        return self.template.format(**match.groupdict())


# Order matters: the first matching entry wins.
SHORTCUTS: tuple[PathShortcut, ...] = (
    PathShortcut(
        "bgp[",
        re.compile(r"^bgp\[(?P<instance>[^\]]+)\]/(?P<rest>.*)$"),
        _protocol_template("BGP"),
    ),
    PathShortcut(
        "ospf[",
        re.compile(r"^ospf\[(?P<instance>[^\]]+)\]/(?P<rest>.*)$"),
        _protocol_template("OSPF"),
    ),
    PathShortcut(
        "isis[",
        re.compile(r"^isis\[(?P<instance>[^\]]+)\]/(?P<rest>.*)$"),
        _protocol_template("ISIS"),
    ),
    PathShortcut(
        "interface[",
        re.compile(r"^interface\[(?P<instance>[^\]]+)\]/(?P<rest>.*)$"),
        "/interfaces/interface[name={instance}]/{rest}",
    ),
    PathShortcut(
        "lldp/",
        re.compile(r"^lldp/(?P<rest>.*)$"),
        "/lldp/{rest}",
    ),
    PathShortcut(
        "system/",
        re.compile(r"^system/(?P<rest>.*)$"),
        "/system/{rest}",
    ),
    PathShortcut(
        "network-instance[",
        re.compile(r"^network-instance\[(?P<instance>[^\]]+)\]/(?P<rest>.*)$"),
        "/network-instances/network-instance[name={instance}]/{rest}",
    ),
)

_NI = r"^/network-instances/network-instance\[name=(?P<instance>[^\]]+)\]"

COMPACTION_RULES: tuple[CompactionRule, ...] = (
    CompactionRule(
        re.compile(_NI + r"/protocols/protocol\[identifier=BGP\]\[name=BGP\]/bgp/(?P<rest>.*)$"),
        "bgp[{instance}]/{rest}",
    ),
    CompactionRule(
        re.compile(_NI + r"/protocols/protocol\[identifier=OSPF\]\[name=OSPF\]/ospf/(?P<rest>.*)$"),
        "ospf[{instance}]/{rest}",
    ),
    CompactionRule(
        re.compile(_NI + r"/protocols/protocol\[identifier=ISIS\]\[name=ISIS\]/isis/(?P<rest>.*)$"),
        "isis[{instance}]/{rest}",
    ),
    CompactionRule(
        re.compile(r"^/interfaces/interface\[name=(?P<instance>[^\]]+)\]/(?P<rest>.*)$"),
        "interface[{instance}]/{rest}",
    ),
    CompactionRule(re.compile(r"^/lldp/(?P<rest>.*)$"), "lldp/{rest}"),
    CompactionRule(re.compile(r"^/system/(?P<rest>.*)$"), "system/{rest}"),
    CompactionRule(
        re.compile(_NI + r"/(?P<rest>.*)$"),
        "network-instance[{instance}]/{rest}",
    ),
)


def is_short_path(path: str) -> bool:
    """Return ``True`` if *path* is not root-anchored."""
    return not path.startswith(ROOT)


def expand_short_path(path: str) -> str:
    """Expand a short path to its canonical OpenConfig form.

    Root-anchored paths are returned unchanged.  Short paths are matched
    against ``SHORTCUTS`` in order; a path matching no shortcut is taken
    to be root-relative and gets a leading separator.

    Args:
        path: Short or canonical path string.

    Returns:
        The canonical path string.

    """
    if not is_short_path(path):
        return path

    for shortcut in SHORTCUTS:
        expanded = shortcut.expand(path)
        if expanded is not None:
            logger.debug("Expanded %s -> %s", path, expanded)
            return expanded

    return ROOT + path


def compact_path(path: str) -> str:
    """Convert a canonical path to its short form where a rule applies.

    Args:
        path: Canonical path string.

    Returns:
        The short form, or *path* unchanged if no rule matches.

    """
    for rule in COMPACTION_RULES:
        compacted = rule.compact(path)
        if compacted is not None:
            return compacted
    return path
