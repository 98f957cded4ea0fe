"""Core module providing path addressing, assertion evaluation and the runner.

This module contains the foundational components of netsert: the path
grammar and shortcut tables, the assertion data model and predicate
evaluation, typed value extraction, the assertion file loader, the
concurrent runner, and the custom exception hierarchy.

``Runner`` depends on ``netsert.client`` and is imported from
``netsert.core.runner`` directly.
"""

from .assertion import Assertion, AssertionFile, Predicate, PredicateKind, Result, Target, Verdict
from .exceptions import (
    AssertionFileError,
    ConfigError,
    ConnectError,
    FetchError,
    GeneratorError,
    InventoryError,
    MalformedPathError,
    NetsertError,
    PredicateError,
)
from .path import Path, PathElement, compact_path, expand_short_path, parse_path

__all__ = [
    "Assertion",
    "AssertionFile",
    "AssertionFileError",
    "ConfigError",
    "ConnectError",
    "FetchError",
    "GeneratorError",
    "InventoryError",
    "MalformedPathError",
    "NetsertError",
    "Path",
    "PathElement",
    "Predicate",
    "PredicateError",
    "PredicateKind",
    "Result",
    "Target",
    "Verdict",
    "compact_path",
    "expand_short_path",
    "parse_path",
]
