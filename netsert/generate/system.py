"""System identity assertions."""

from __future__ import annotations

from ..client.base_client import ProtocolClient
from ..core.assertion import Assertion
from .base import GenerateOptions, Generator, equals

HOSTNAME_PATHS = ("/system/state/hostname", "/system/config/hostname")
SOFTWARE_VERSION_PATH = "/system/state/software-version"


class SystemGenerator(Generator):
    """Assert the hostname and running software version."""

    name = "system"
    description = "Generate assertions for system hostname and software version"

    def generate(self, client: ProtocolClient, options: GenerateOptions) -> list[Assertion]:
        assertions: list[Assertion] = []

        hostname = ""
        for path in HOSTNAME_PATHS:
            hostname = self.query_text(client, path)
            if hostname:
                break
        if hostname:
            assertions.append(equals(f"Hostname is {hostname}", "system/state/hostname", hostname))

        version = self.query_text(client, SOFTWARE_VERSION_PATH)
        if version:
            assertions.append(
                equals(f"Software version is {version}", "system/state/software-version", version)
            )

        return assertions
