"""Assertion data model and predicate evaluation.

An ``Assertion`` pairs a canonical path with one ``Predicate``.  The
``validate`` function compares a fetched value (and whether the path
existed at all) against that predicate and returns a ``Result`` rather
than raising, so callers can accumulate outcomes.

Usage::

    assertion = Assertion(
        path="/interfaces/interface[name=Ethernet1]/state/oper-status",
        predicate=Predicate(PredicateKind.EQUALS, "UP"),
    )
    result = validate(assertion, "UP", exists=True)
    assert result.status == Verdict.PASS
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .exceptions import PredicateError

logger = logging.getLogger(__name__)


class PredicateKind(StrEnum):
    """The comparison an assertion declares.  Values are the YAML keys."""

    EQUALS = "equals"
    CONTAINS = "contains"
    MATCHES = "matches"
    EXISTS = "exists"
    ABSENT = "absent"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"


NUMERIC_KINDS = (PredicateKind.GT, PredicateKind.LT, PredicateKind.GTE, PredicateKind.LTE)
BOOLEAN_KINDS = (PredicateKind.EXISTS, PredicateKind.ABSENT)


class Verdict(StrEnum):
    """Outcome of evaluating one assertion."""

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


@dataclass(frozen=True)
class Predicate:
    """A single tagged predicate.

    Attributes:
        kind: Which comparison to perform.
        operand: ``bool`` for ``exists``/``absent``, otherwise the string
            to compare with (numeric thresholds are kept as text).

    """

    kind: PredicateKind
    operand: str | bool

    @property
    def is_active(self) -> bool:
        """Whether the predicate is enabled.

        A boolean predicate set to ``false`` is declared but inert.
        """
        if self.kind in BOOLEAN_KINDS:
            return bool(self.operand)
        return True


@dataclass(frozen=True)
class Assertion:
    """A single state assertion against one path.

    Attributes:
        path: Canonical path (expanded at load time).
        predicate: The comparison, or ``None`` if none was declared.
        name: Optional display name.
        description: Optional free-form description.

    """

    path: str
    predicate: Predicate | None = None
    name: str = ""
    description: str = ""

    @property
    def display_name(self) -> str:
        """Return the name, falling back to the path."""
        return self.name or self.path

    @property
    def expected(self) -> str:
        """Return the expected value for ``equals`` assertions, else ``""``."""
        if self.predicate is not None and self.predicate.kind == PredicateKind.EQUALS:
            return str(self.predicate.operand)
        return ""

    def validate(self, value: str, exists: bool) -> Result:
        """Evaluate this assertion.  See ``validate``."""
        return validate(self, value, exists)


@dataclass(frozen=True)
class Target:
    """A device and the assertions to run against it.

    Attributes:
        host: Device address (``host:port``) or an ``@group`` reference.
        username: Optional per-target username.
        password: Optional per-target password.
        insecure: Use a plaintext session instead of TLS.
        assertions: Assertions in declaration order.

    """

    host: str
    username: str = ""
    password: str = ""
    insecure: bool = False
    assertions: tuple[Assertion, ...] = ()

    @property
    def is_group_reference(self) -> bool:
        """Return ``True`` if ``host`` names an inventory group."""
        return self.host.startswith("@")


@dataclass(frozen=True)
class AssertionFile:
    """Top-level structure of an assertion file."""

    targets: tuple[Target, ...] = ()

    @property
    def assertion_count(self) -> int:
        """Total number of assertions over all targets."""
        return sum(len(t.assertions) for t in self.targets)


@dataclass(frozen=True)
class Result:
    """Outcome of a single assertion against a single target.

    Exactly one of pass, fail or error holds.  When ``error`` is set,
    ``passed`` is not meaningful.

    Attributes:
        assertion: The evaluated assertion.
        passed: Whether the predicate held.
        actual_value: The extracted value that was compared.
        error: Why the assertion could not be evaluated, if it couldn't.
        target: Address of the device the value came from.

    """

    assertion: Assertion
    passed: bool = False
    actual_value: str = ""
    error: Exception | None = None
    target: str = ""

    @property
    def status(self) -> Verdict:
        """Return the verdict."""
        if self.error is not None:
            return Verdict.ERROR
        return Verdict.PASS if self.passed else Verdict.FAIL

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""
        data: dict[str, Any] = {
            "target": self.target,
            "name": self.assertion.display_name,
            "path": self.assertion.path,
            "status": self.status.value,
        }
        if self.actual_value:
            data["actual"] = self.actual_value
        if self.assertion.expected:
            data["expected"] = self.assertion.expected
        if self.error is not None:
            data["error"] = str(self.error)
        return data


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _error(assertion: Assertion, value: str, message: str, /, **details: object) -> Result:
    return Result(
        assertion=assertion,
        actual_value=value,
        error=PredicateError(message, details=dict(details) or None),
    )


def _compare(kind: PredicateKind, actual: float, threshold: float) -> bool:
    if kind == PredicateKind.GT:
        return actual > threshold
    if kind == PredicateKind.LT:
        return actual < threshold
    if kind == PredicateKind.GTE:
        return actual >= threshold
    return actual <= threshold


def validate(assertion: Assertion, value: str, exists: bool) -> Result:
    """Evaluate an assertion against a fetched value.

    Order of evaluation:

    1. ``exists: true`` passes iff the path exists.
    2. ``absent: true`` passes iff the path does not exist.
    3. Any other predicate on a missing path is an error.
    4. ``equals``, ``contains``, ``matches`` and the numeric comparisons
       decide pass or fail; an invalid regex or a non-numeric value is an
       error.
    5. No (active) predicate is an error.

    Args:
        assertion: The assertion to evaluate.
        value: Extracted string value ("" when the path is missing).
        exists: Whether the path resolved to a value.

    Returns:
        A ``Result`` with no target stamped.

    """
    predicate = assertion.predicate

    if predicate is not None and predicate.is_active:
        if predicate.kind == PredicateKind.EXISTS:
            return Result(assertion=assertion, passed=exists, actual_value=value)
        if predicate.kind == PredicateKind.ABSENT:
            return Result(assertion=assertion, passed=not exists, actual_value=value)

    if not exists:
        return _error(assertion, value, "path does not exist")

    if predicate is None or not predicate.is_active:
        return _error(assertion, value, "no assertion type specified")

    operand = str(predicate.operand)

    if predicate.kind == PredicateKind.EQUALS:
        return Result(assertion=assertion, passed=value == operand, actual_value=value)

    if predicate.kind == PredicateKind.CONTAINS:
        return Result(assertion=assertion, passed=operand in value, actual_value=value)

    if predicate.kind == PredicateKind.MATCHES:
        try:
            pattern = re.compile(operand)
        except re.error as exc:
            return _error(assertion, value, f"invalid regex: {exc}", pattern=operand)
        return Result(
            assertion=assertion,
            passed=pattern.search(value) is not None,
            actual_value=value,
        )

    try:
        actual = float(value)
    except ValueError:
        return _error(assertion, value, "value is not numeric", value=value)
    try:
        threshold = float(operand)
    except ValueError:
        return _error(assertion, value, "threshold is not numeric", threshold=operand)

    return Result(
        assertion=assertion,
        passed=_compare(predicate.kind, actual, threshold),
        actual_value=value,
    )
