"""Custom exception hierarchy for netsert.

All netsert exceptions inherit from ``NetsertError`` to enable granular
catch clauses while still allowing a single top-level handler.

Exception tree::

    NetsertError
    ├── MalformedPathError
    ├── ConnectError
    ├── FetchError
    ├── PredicateError
    ├── AssertionFileError
    ├── InventoryError
    ├── ConfigError
    └── GeneratorError
"""

from __future__ import annotations


class NetsertError(Exception):
    """Base exception for all netsert errors.

    Attributes:
        message: Human-readable error description.
        device: Optional device address that triggered the error.
        details: Optional mapping of additional contextual data.

    """

    def __init__(
        self,
        message: str,
        device: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize with a message, optional device context, and details."""
        self.message = message
        self.device = device
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional device context."""
        parts: list[str] = []
        if self.device:
            parts.append(f"[{self.device}]")
        parts.append(self.message)
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class MalformedPathError(NetsertError):
    """Raised when a path string cannot be parsed.

    Examples:
        - Unbalanced brackets
        - Key group without ``=``
        - Empty element name

    """


class ConnectError(NetsertError):
    """Raised when a protocol session to a target cannot be opened.

    Fatal to the whole run.

    Examples:
        - Dial timeout
        - TLS handshake failure
        - Transport library not installed

    """


class FetchError(NetsertError):
    """Raised when a single path fetch fails.

    Captured per assertion as an error result.

    Examples:
        - RPC error other than not-found
        - Fetch cancelled while in flight

    """


class PredicateError(NetsertError):
    """Raised (or recorded) when a predicate cannot be evaluated.

    Examples:
        - Invalid regular expression
        - Non-numeric value for a numeric comparison
        - Path does not exist for a value predicate
        - No predicate declared

    """


class AssertionFileError(NetsertError):
    """Raised when an assertion file cannot be loaded.

    Examples:
        - File missing or unreadable
        - Invalid YAML
        - Target without host, assertion without path

    """


class InventoryError(NetsertError):
    """Raised when inventory loading or lookup fails.

    Examples:
        - Inventory file that is neither YAML nor INI
        - Unknown group reference

    """


class ConfigError(NetsertError):
    """Raised when the credential configuration cannot be read.

    Examples:
        - Invalid YAML in ``netsert.yaml``
        - Unreadable config file

    """


class GeneratorError(NetsertError):
    """Raised when assertion generation fails.

    Examples:
        - Unknown generator name
        - Device payload that is not valid JSON

    """
