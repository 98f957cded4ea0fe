"""Assertion generators that baseline live device state.

``default_generators()`` returns a fresh registry of every built-in
generator keyed by name; pass it (or your own mapping) to
``generate_file``.
"""

from __future__ import annotations

from .base import GenerateOptions, Generator, generate_file
from .bgp import BgpGenerator
from .interfaces import InterfacesGenerator
from .lldp import LldpGenerator
from .ospf import OspfGenerator
from .system import SystemGenerator
from .vxlan import VxlanGenerator

BUILTIN_GENERATORS: tuple[type[Generator], ...] = (
    BgpGenerator,
    InterfacesGenerator,
    LldpGenerator,
    OspfGenerator,
    SystemGenerator,
    VxlanGenerator,
)


def default_generators() -> dict[str, Generator]:
    """Return a new registry containing every built-in generator."""
    return {cls.name: cls() for cls in BUILTIN_GENERATORS}


__all__ = [
    "BUILTIN_GENERATORS",
    "BgpGenerator",
    "GenerateOptions",
    "Generator",
    "InterfacesGenerator",
    "LldpGenerator",
    "OspfGenerator",
    "SystemGenerator",
    "VxlanGenerator",
    "default_generators",
    "generate_file",
]
