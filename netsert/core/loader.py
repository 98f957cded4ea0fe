"""Assertion file loading and serialization.

Parses YAML assertion files into an ``AssertionFile``, validating that
every target has a host and every assertion a path.  Short paths are
expanded to canonical form here, once, and checked with ``parse_path`` so
malformed paths are rejected before any device is contacted.

Example file::

    targets:
      - host: spine1:6030
        insecure: true
        assertions:
          - name: Uplink is up
            path: interface[Ethernet1]/state/oper-status
            equals: UP
          - path: bgp[default]/neighbors/neighbor[neighbor-address=10.0.0.1]
            exists: true

Usage::

    assertion_file = load_file("assertions.yaml")
    text = dump(assertion_file, header="# reviewed\\n")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .assertion import (
    BOOLEAN_KINDS,
    NUMERIC_KINDS,
    Assertion,
    AssertionFile,
    Predicate,
    PredicateKind,
    Target,
)
from .exceptions import AssertionFileError
from .path import compact_path, expand_short_path, parse_path

logger = logging.getLogger(__name__)

# Order in which evaluation consults predicate keys.
PREDICATE_PRIORITY = (
    PredicateKind.EQUALS,
    PredicateKind.CONTAINS,
    PredicateKind.MATCHES,
    PredicateKind.GT,
    PredicateKind.LT,
    PredicateKind.GTE,
    PredicateKind.LTE,
)


def load_file(path: str | Path) -> AssertionFile:
    """Read and parse an assertion file from disk.

    Raises:
        AssertionFileError: If the file cannot be read or is invalid.
        MalformedPathError: If any assertion path is malformed.

    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise AssertionFileError(f"reading file: {exc}", details={"file": str(path)}) from exc

    assertion_file = parse(text)
    logger.info(
        "Loaded %d targets with %d assertions from %s",
        len(assertion_file.targets),
        assertion_file.assertion_count,
        path,
    )
    return assertion_file


def parse(text: str) -> AssertionFile:
    """Parse assertion YAML text.

    Args:
        text: YAML document.

    Returns:
        A validated, path-expanded ``AssertionFile``.

    Raises:
        AssertionFileError: On YAML errors or missing required fields.
        MalformedPathError: If any assertion path is malformed.

    """
    import yaml  # type: ignore[import-untyped]

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise AssertionFileError(f"parsing YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise AssertionFileError("assertion file must be a mapping with a 'targets' list")
    targets_raw = raw.get("targets") or []
    if not isinstance(targets_raw, list):
        raise AssertionFileError("'targets' must be a list")

    targets = tuple(_parse_target(i, t) for i, t in enumerate(targets_raw))
    return AssertionFile(targets=targets)


def _parse_target(index: int, raw: Any) -> Target:
    if not isinstance(raw, dict):
        raise AssertionFileError(f"target {index}: must be a mapping")

    # 'address' is the deprecated spelling of 'host'
    host = str(raw.get("host") or raw.get("address") or "")
    if not host:
        raise AssertionFileError(f"target {index}: host is required")

    assertions_raw = raw.get("assertions") or []
    if not isinstance(assertions_raw, list):
        raise AssertionFileError(f"target {index}: 'assertions' must be a list", device=host)

    return Target(
        host=host,
        username=_text(raw.get("username")),
        password=_text(raw.get("password")),
        insecure=bool(raw.get("insecure", False)),
        assertions=tuple(
            _parse_assertion(index, j, a, host) for j, a in enumerate(assertions_raw)
        ),
    )


def _parse_assertion(target_index: int, index: int, raw: Any, host: str) -> Assertion:
    where = f"target {target_index}, assertion {index}"
    if not isinstance(raw, dict):
        raise AssertionFileError(f"{where}: must be a mapping", device=host)

    path = _text(raw.get("path"))
    if not path:
        raise AssertionFileError(f"{where}: path is required", device=host)

    canonical = expand_short_path(path)
    parse_path(canonical)

    return Assertion(
        path=canonical,
        predicate=_parse_predicate(where, raw, host),
        name=_text(raw.get("name")),
        description=_text(raw.get("description")),
    )


def _parse_predicate(where: str, raw: dict[str, Any], host: str) -> Predicate | None:
    """Select the single predicate an assertion mapping declares."""
    declared = [kind for kind in PredicateKind if raw.get(kind.value) is not None]
    if not declared:
        return None
    if len(declared) > 1:
        logger.warning(
            "%s declares several predicates (%s); only one is evaluated",
            where,
            ", ".join(k.value for k in declared),
        )

    for kind in BOOLEAN_KINDS:
        if kind in declared and _flag(raw[kind.value]):
            return Predicate(kind, True)

    for kind in PREDICATE_PRIORITY:
        if kind in declared:
            operand = _text(raw[kind.value])
            if kind in NUMERIC_KINDS:
                _check_threshold(where, kind, operand, host)
            return Predicate(kind, operand)

    # Only false exists/absent remain; kept so the assertion round-trips.
    kind = declared[0]
    return Predicate(kind, False)


def _check_threshold(where: str, kind: PredicateKind, operand: str, host: str) -> None:
    try:
        float(operand)
    except ValueError:
        raise AssertionFileError(
            f"{where}: '{kind.value}' threshold is not numeric",
            device=host,
            details={"threshold": operand},
        ) from None


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _text(value: Any) -> str:
    """Normalize a YAML scalar to its string form."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ---- Serialization ----


def to_dict(assertion_file: AssertionFile, short_paths: bool = True) -> dict[str, Any]:
    """Convert an assertion file back to its YAML mapping form.

    Args:
        assertion_file: The file to serialize.
        short_paths: Compact canonical paths where a shortcut exists.

    """
    targets: list[dict[str, Any]] = []
    for target in assertion_file.targets:
        entry: dict[str, Any] = {"host": target.host}
        if target.username:
            entry["username"] = target.username
        if target.password:
            entry["password"] = target.password
        if target.insecure:
            entry["insecure"] = True
        entry["assertions"] = [_assertion_dict(a, short_paths) for a in target.assertions]
        targets.append(entry)
    return {"targets": targets}


def _assertion_dict(assertion: Assertion, short_paths: bool) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    if assertion.name:
        entry["name"] = assertion.name
    if assertion.description:
        entry["description"] = assertion.description
    entry["path"] = compact_path(assertion.path) if short_paths else assertion.path
    if assertion.predicate is not None:
        entry[assertion.predicate.kind.value] = assertion.predicate.operand
    return entry


def dump(
    assertion_file: AssertionFile,
    header: str | None = None,
    short_paths: bool = True,
) -> str:
    """Serialize an assertion file to YAML text.

    Args:
        assertion_file: The file to serialize.
        header: Optional text (typically comments) placed before the YAML.
        short_paths: Compact canonical paths where a shortcut exists.

    Returns:
        The YAML document; ``parse`` accepts it back.

    """
    import yaml  # type: ignore[import-untyped]

    body = yaml.safe_dump(
        to_dict(assertion_file, short_paths=short_paths),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    return (header or "") + body
