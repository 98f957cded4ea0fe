"""Generator abstraction and shared helpers.

A generator queries a subtree of live device state once and turns what
it finds into assertions that would pass right now, giving operators a
baseline assertion file to review and commit.

Generated assertions use short paths (``interface[Ethernet1]/...``); they
are meant to be written out with ``netsert.core.loader.dump`` and expanded
when the file is loaded again.
"""

from __future__ import annotations

import abc
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..client.base_client import ProtocolClient
from ..client.gnmi_client import rpc_status
from ..core.assertion import Assertion, AssertionFile, Predicate, PredicateKind, Target
from ..core.exceptions import FetchError, GeneratorError
from ..core.value import extract_value

logger = logging.getLogger(__name__)

# gRPC status names treated as "feature not configured".
NOT_CONFIGURED_STATUSES = ("NOT_FOUND",)

# Message substrings with the same meaning, for errors that carry no status.
NOT_CONFIGURED_MARKERS = ("NotFound", "not found")


@dataclass(frozen=True)
class GenerateOptions:
    """Options passed to every generator.

    Attributes:
        target: Address recorded as the host of the generated target.
        username: Username used for the session.
        password: Password used for the session.
        insecure: Whether the session is plaintext.

    """

    target: str
    username: str = ""
    password: str = ""
    insecure: bool = False


class Generator(abc.ABC):
    """Synthesizes assertions from one area of device state.

    Subclasses set ``name`` and ``description`` and implement ``generate``.
    """

    name: str = ""
    description: str = ""

    # Errors meaning the queried subtree is simply not there.
    ignore_statuses: tuple[str, ...] = NOT_CONFIGURED_STATUSES
    ignore_errors: tuple[str, ...] = NOT_CONFIGURED_MARKERS

    def __init__(self) -> None:
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abc.abstractmethod
    def generate(self, client: ProtocolClient, options: GenerateOptions) -> list[Assertion]:
        """Query the device and return assertions.

        Args:
            client: A connected protocol client.
            options: Generation options.

        Returns:
            Assertions in a stable order (possibly empty).

        Raises:
            GeneratorError: If the device payload cannot be interpreted or
                the query fails for a reason other than missing data.

        """

    # -- Helpers ------------------------------------------------------------

    def query(self, client: ProtocolClient, path: str) -> Any:
        """Fetch *path* and decode its JSON payload.

        Returns:
            The decoded value, or ``None`` when the path is absent, empty,
            or the device reports it as not configured.

        """
        try:
            fetched = client.fetch(path)
        except FetchError as exc:
            if self._not_configured(exc):
                self._logger.debug("%s: %s not available (%s)", self.name, path, exc)
                return None
            raise GeneratorError(
                f"query {path}: {exc.message}",
                device=client.address,
                details={"generator": self.name},
            ) from exc

        if not fetched.exists:
            return None
        text = extract_value(fetched.value)
        if not text:
            return None
        return decode_json(text)

    def _not_configured(self, exc: FetchError) -> bool:
        status = rpc_status(exc.__cause__)
        if status is not None:
            return status.name in self.ignore_statuses
        return any(marker in str(exc) for marker in self.ignore_errors)

    def query_text(self, client: ProtocolClient, path: str) -> str:
        """Fetch *path* as a scalar string, unquoting JSON strings."""
        try:
            fetched = client.fetch(path)
        except FetchError as exc:
            self._logger.debug("%s: %s unavailable (%s)", self.name, path, exc)
            return ""
        if not fetched.exists:
            return ""
        text = extract_value(fetched.value)
        decoded = decode_json(text)
        if isinstance(decoded, str):
            return decoded
        return text.strip('"')


def decode_json(text: str) -> Any:
    """Decode JSON text, returning the raw text if it is not JSON."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def openconfig_list(data: Any, name: str) -> list[dict[str, Any]]:
    """Return the list stored under *name*, with or without a module prefix.

    Devices answer with either ``{"openconfig-xxx:name": [...]}`` or the
    bare ``{"name": [...]}``; both are accepted.
    """
    if not isinstance(data, Mapping):
        return []
    for key, value in data.items():
        if (key == name or key.rsplit(":", 1)[-1] == name) and isinstance(value, list):
            return [item for item in value if isinstance(item, Mapping)]
    return []


def openconfig_get(data: Any, name: str) -> Any:
    """Return the member *name* of a mapping, ignoring module prefixes."""
    if not isinstance(data, Mapping):
        return None
    if name in data:
        return data[name]
    for key, value in data.items():
        if key.rsplit(":", 1)[-1] == name:
            return value
    return None


def equals(name: str, path: str, value: str) -> Assertion:
    """Build an ``equals`` assertion."""
    return Assertion(path=path, predicate=Predicate(PredicateKind.EQUALS, value), name=name)


def generate_file(
    client: ProtocolClient,
    names: Iterable[str],
    registry: Mapping[str, Generator],
    options: GenerateOptions,
) -> AssertionFile:
    """Run several generators and collect their output into one target.

    Args:
        client: A connected protocol client.
        names: Generator names in the order their output should appear.
        registry: Available generators by name.
        options: Generation options.

    Returns:
        An ``AssertionFile`` with a single target for ``options.target``.

    Raises:
        GeneratorError: If a name is not in *registry* or a generator fails.

    """
    assertions: list[Assertion] = []
    for name in names:
        generator = registry.get(name)
        if generator is None:
            raise GeneratorError(
                f"Unknown generator '{name}'",
                details={"available": ", ".join(sorted(registry))},
            )
        produced = generator.generate(client, options)
        logger.info("Generator %s produced %d assertions", name, len(produced))
        assertions.extend(produced)

    # Credentials are never written into generated files.
    return AssertionFile(targets=(Target(host=options.target, assertions=tuple(assertions)),))
