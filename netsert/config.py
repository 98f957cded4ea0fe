"""Credential configuration and discovery.

Reads ``netsert.yaml`` style files holding default credentials and
per-target overrides.  The runner asks a ``Config`` for credentials only
to fill fields the assertion file left empty.

Example file::

    defaults:
      username: admin
      password: admin
      insecure: true
    targets:
      spine1:6030:
        username: ops
        password: secret

Usage::

    cfg = load_config()
    username, password, insecure = cfg.get_credentials("spine1:6030")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from .core.exceptions import ConfigError

logger = logging.getLogger(__name__)

LOCAL_CONFIG_FILES = (Path("netsert.yaml"), Path(".netsert.yaml"))


def default_config_paths() -> list[Path]:
    """Return config locations in priority order."""
    home = Path.home()
    return [
        *LOCAL_CONFIG_FILES,
        home / ".netsert.yaml",
        home / ".config" / "netsert" / "config.yaml",
    ]


class CredentialProvider(Protocol):
    """Anything that can resolve credentials for a target address."""

    def get_credentials(self, address: str) -> tuple[str, str, bool]: ...


@dataclass
class Defaults:
    """Default settings applied to every target.

    Attributes:
        username: Default login username.
        password: Default login password.
        insecure: Default plaintext flag.
        timeout: Optional default timeout string (e.g. ``30s``).

    """

    username: str = ""
    password: str = ""
    insecure: bool = False
    timeout: str = ""


@dataclass
class TargetSettings:
    """Per-target overrides; ``insecure`` is ``None`` when not given."""

    username: str = ""
    password: str = ""
    insecure: bool | None = None


@dataclass
class Config:
    """Credential configuration.

    Attributes:
        defaults: Settings for any target.
        targets: Settings keyed by target address.
        source: File the config was read from, if any.

    """

    defaults: Defaults = field(default_factory=Defaults)
    targets: dict[str, TargetSettings] = field(default_factory=dict)
    source: Path | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any], source: Path | None = None) -> Config:
        """Build a config from parsed YAML data."""
        defaults_raw = raw.get("defaults") or {}
        targets_raw = raw.get("targets") or {}
        if not isinstance(defaults_raw, dict) or not isinstance(targets_raw, dict):
            raise ConfigError(
                "'defaults' and 'targets' must be mappings",
                details={"source": source},
            )

        targets: dict[str, TargetSettings] = {}
        for address, settings in targets_raw.items():
            settings = settings or {}
            insecure = settings.get("insecure")
            targets[str(address)] = TargetSettings(
                username=str(settings.get("username", "") or ""),
                password=str(settings.get("password", "") or ""),
                insecure=None if insecure is None else bool(insecure),
            )

        return cls(
            defaults=Defaults(
                username=str(defaults_raw.get("username", "") or ""),
                password=str(defaults_raw.get("password", "") or ""),
                insecure=bool(defaults_raw.get("insecure", False)),
                timeout=str(defaults_raw.get("timeout", "") or ""),
            ),
            targets=targets,
            source=source,
        )

    def get_credentials(self, address: str) -> tuple[str, str, bool]:
        """Return ``(username, password, insecure)`` for a target.

        Target-specific values are used first; defaults fill whatever is
        still empty.
        """
        username, password, insecure = "", "", False
        target = self.targets.get(address)
        if target is not None:
            username = target.username
            password = target.password
            if target.insecure is not None:
                insecure = target.insecure

        return (
            username or self.defaults.username,
            password or self.defaults.password,
            insecure or self.defaults.insecure,
        )

    def default_timeout(self) -> float | None:
        """Return ``defaults.timeout`` in seconds, or ``None`` when unset."""
        if not self.defaults.timeout:
            return None
        return parse_duration(self.defaults.timeout)

    def merge_defaults(self, username: str = "", password: str = "", insecure: bool = False) -> None:
        """Fill empty defaults from another source (e.g. inventory defaults)."""
        if not self.defaults.username:
            self.defaults.username = username
        if not self.defaults.password:
            self.defaults.password = password
        if not self.defaults.insecure:
            self.defaults.insecure = insecure


_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(text: str) -> float:
    """Parse a duration such as ``30s``, ``500ms``, ``2m`` or ``10`` into seconds.

    Raises:
        ConfigError: If the text is not a recognised duration.

    """
    value = text.strip()
    for suffix in sorted(_DURATION_UNITS, key=len, reverse=True):
        if value.endswith(suffix):
            number, scale = value[: -len(suffix)], _DURATION_UNITS[suffix]
            break
    else:
        number, scale = value, 1.0
    try:
        seconds = float(number) * scale
    except ValueError:
        raise ConfigError(f"Invalid duration '{text}'") from None
    if seconds <= 0:
        raise ConfigError(f"Duration must be positive: '{text}'")
    return seconds


def load_config_file(path: Path) -> Config:
    """Load a config from a specific file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ConfigError: If the file cannot be read or is not valid YAML.

    """
    import yaml  # type: ignore[import-untyped]

    try:
        with Path(path).open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except FileNotFoundError:
        raise
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return Config.from_dict(raw, source=Path(path))


def load_config(paths: list[Path] | None = None) -> Config:
    """Load the first config file found.

    Args:
        paths: Candidate files in priority order; defaults to
            ``default_config_paths()``.

    Returns:
        The loaded config, or an empty one if no file exists.

    """
    for path in paths if paths is not None else default_config_paths():
        try:
            cfg = load_config_file(path)
        except FileNotFoundError:
            continue
        logger.info("Loaded config from %s", path)
        return cfg

    logger.debug("No config file found, using empty config")
    return Config()
