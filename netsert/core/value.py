"""Normalization of gNMI typed values into comparable strings.

The transport returns one of several value encodings.  All assertion
predicates work on strings (or floats parsed from strings), so every
variant is flattened to a single text form here.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ValueKind(StrEnum):
    """Tag of a gNMI ``TypedValue``."""

    STRING = "string"
    INT = "int"
    UINT = "uint"
    BOOL = "bool"
    FLOAT = "float"
    JSON = "json"
    JSON_IETF = "json_ietf"
    ASCII = "ascii"


# gNMI protobuf oneof field name -> kind
PROTO_FIELDS: dict[str, ValueKind] = {
    "string_val": ValueKind.STRING,
    "int_val": ValueKind.INT,
    "uint_val": ValueKind.UINT,
    "bool_val": ValueKind.BOOL,
    "float_val": ValueKind.FLOAT,
    "double_val": ValueKind.FLOAT,
    "json_val": ValueKind.JSON,
    "json_ietf_val": ValueKind.JSON_IETF,
    "ascii_val": ValueKind.ASCII,
}

# Compact form, as devices put JSON-IETF on the wire.
JSON_SEPARATORS = (",", ":")


@dataclass(frozen=True)
class TypedValue:
    """A tagged value as returned by a protocol fetch.

    Attributes:
        kind: Which representation ``value`` holds.
        value: The raw payload (``bytes`` for the JSON variants when it
            comes straight off the wire).

    """

    kind: ValueKind
    value: Any

    @classmethod
    def from_proto(cls, message: Any) -> TypedValue | None:
        """Adapt a gNMI protobuf ``TypedValue`` message.

        Returns:
            The adapted value, or ``None`` when no oneof field is set.

        """
        if message is None:
            return None
        field_name = message.WhichOneof("value")
        if field_name is None:
            return None
        kind = PROTO_FIELDS.get(field_name, ValueKind.STRING)
        return cls(kind=kind, value=getattr(message, field_name))

    @classmethod
    def from_python(cls, value: Any) -> TypedValue | None:
        """Adapt a value already decoded by the transport library.

        Floats and containers are re-encoded as compact JSON-IETF text so
        that the result matches what a raw ``json_ietf_val`` would carry;
        a decoded ``1.5`` stays ``1.5`` rather than the fixed six decimals
        of a protobuf ``double_val``.
        """
        if value is None:
            return None
        if isinstance(value, bool):
            return cls(ValueKind.BOOL, value)
        if isinstance(value, int):
            return cls(ValueKind.INT if value < 0 else ValueKind.UINT, value)
        if isinstance(value, (float, dict, list)):
            return cls(ValueKind.JSON_IETF, json.dumps(value, separators=JSON_SEPARATORS))
        if isinstance(value, bytes):
            return cls(ValueKind.ASCII, value)
        return cls(ValueKind.STRING, str(value))


def _as_text(raw: Any) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", errors="replace")
    return str(raw)


def extract_value(typed: TypedValue | None) -> str:
    """Convert a typed value to its canonical string form.

    Integers render in decimal, floats with six fixed decimals, booleans
    as ``true``/``false`` and the JSON/ASCII variants as their raw text.
    ``None`` extracts to the empty string.  Type information is lost.
    """
    if typed is None or typed.value is None:
        return ""

    kind = typed.kind
    raw = typed.value
    if kind in (ValueKind.INT, ValueKind.UINT):
        return str(int(raw))
    if kind == ValueKind.BOOL:
        return "true" if raw else "false"
    if kind == ValueKind.FLOAT:
        return f"{float(raw):f}"
    return _as_text(raw)
