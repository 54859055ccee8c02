"""Protocols for the external collaborators of cloudproxy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class InstanceInfo:
    """Identity of an instance returned by a provider create call."""

    instance_id: str
    name: str
    region: str


class InstanceProvider(Protocol):
    """Cloud control-plane client used to create, inspect and delete instances."""

    name: str
    default_ssh_username: str

    def list_regions(self) -> list[str]:
        """Return region identifiers in provider order."""
        ...

    def create_instances(
        self, name_prefix: str, region: str, key_id: str, count: int
    ) -> list[InstanceInfo]:
        """Create ``count`` instances in ``region`` and return their identities."""
        ...

    def get_address(self, instance_id: str, region: str) -> str:
        """Return the public IPv4 address, or an empty string if none yet."""
        ...

    def delete_instance(self, instance_id: str, region: str) -> None:
        """Request deletion of an instance."""
        ...


class TunnelTransport(Protocol):
    """Builds the command line of the process that carries a SOCKS tunnel."""

    def build_command(self, local_port: str, address: str, identity: str) -> list[str]:
        """Return argv for a dynamic port forward on ``local_port``."""
        ...
