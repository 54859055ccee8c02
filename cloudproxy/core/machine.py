"""Per-instance state and the registry of provisioned machines."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from cloudproxy.core.exceptions import (
    DestroyError,
    ReadinessError,
    TunnelAlreadyActive,
    TunnelSpawnError,
    TunnelStopError,
)
from cloudproxy.core.interfaces import InstanceInfo, InstanceProvider, TunnelTransport
from cloudproxy.providers.exceptions import ProviderError
from cloudproxy.services.tunnel import TunnelSupervisor

logger = logging.getLogger(__name__)


class Machine:
    """A provisioned instance and the state of its SOCKS tunnel.

    Parameters
    ----------
    machine_id : int
        Operator-facing identifier, assigned in creation order
    instance_id : str
        Provider identifier of the instance
    name : str
        Provider-assigned instance name
    region : str
        Region the instance runs in
    transport : TunnelTransport
        Builds the tunnel command line
    supervisor_factory : Callable[[str], TunnelSupervisor] | None
        Factory creating a supervisor for a machine name. If None, uses
        TunnelSupervisor

    Attributes
    ----------
    id : int
        Operator-facing identifier
    address : str
        Public address, empty until resolved
    listener_port : str
        Local SOCKS port, empty while no tunnel is active
    destroyed : bool
        True once the provider accepted deletion

    Notes
    -----
    ``listener_port`` is non-empty exactly when ``tunnel_active`` is true and a
    process handle is held. Tunnel fields are guarded by a re-entrant lock
    because the interrupt handler runs on the same thread as the console.
    """

    def __init__(
        self,
        machine_id: int,
        instance_id: str,
        name: str,
        region: str,
        transport: TunnelTransport,
        supervisor_factory: Callable[[str], TunnelSupervisor] | None = None,
    ) -> None:
        self.id = machine_id
        self.instance_id = instance_id
        self.name = name
        self.region = region
        self.address = ""
        self.listener_port = ""
        self.destroyed = False
        self.transport = transport
        self.supervisor_factory = supervisor_factory or TunnelSupervisor
        self._supervisor: TunnelSupervisor | None = None
        self._lock = threading.RLock()

    @classmethod
    def from_instance(
        cls,
        machine_id: int,
        instance: InstanceInfo,
        transport: TunnelTransport,
        supervisor_factory: Callable[[str], TunnelSupervisor] | None = None,
    ) -> Machine:
        """Build a machine from a provider create result."""
        return cls(
            machine_id=machine_id,
            instance_id=instance.instance_id,
            name=instance.name,
            region=instance.region,
            transport=transport,
            supervisor_factory=supervisor_factory,
        )

    def __repr__(self) -> str:
        return (
            f"Machine(id={self.id}, name={self.name!r}, address={self.address!r}, "
            f"listener_port={self.listener_port!r})"
        )

    @property
    def tunnel_active(self) -> bool:
        with self._lock:
            return self._supervisor is not None

    @property
    def process(self) -> Any | None:
        with self._lock:
            return self._supervisor.process if self._supervisor is not None else None

    def snapshot(self) -> dict[str, Any]:
        """Return a consistent copy of the displayed fields."""
        with self._lock:
            return {
                "id": self.id,
                "name": self.name,
                "address": self.address,
                "region": self.region,
                "listener_port": self.listener_port,
                "tunnel_active": self._supervisor is not None,
            }

    def resolve_address(self, provider: InstanceProvider) -> str:
        """Query the provider once for the public address.

        Parameters
        ----------
        provider : InstanceProvider
            Provider that created the instance

        Returns
        -------
        str
            Resolved address

        Raises
        ------
        ReadinessError
            If the lookup fails or the instance has no public address yet
        """
        try:
            address = provider.get_address(self.instance_id, self.region)
        except ProviderError as e:
            raise ReadinessError(
                f"Could not get the address of {self.name}: {e}"
            ) from e

        if not address:
            raise ReadinessError(f"{self.name} has no public address yet")

        with self._lock:
            self.address = address

        return address

    def is_ready(self) -> bool:
        return self.address != ""

    def start_tunnel(self, local_port: str, identity: str) -> None:
        """Start a SOCKS tunnel listening on ``local_port``.

        Parameters
        ----------
        local_port : str
            Local port for the SOCKS5 listener
        identity : str
            Path to the SSH private key

        Raises
        ------
        TunnelAlreadyActive
            If a tunnel is already running; the existing one is untouched
        TunnelSpawnError
            If the machine is not ready or the process cannot be spawned
        """
        with self._lock:
            if self._supervisor is not None:
                raise TunnelAlreadyActive(
                    f"{self.name} already has an active socks proxy on port "
                    f"{self.listener_port}"
                )

            if not self.is_ready():
                raise TunnelSpawnError(f"{self.name} has no address, cannot start a tunnel")

            local_port = str(local_port)
            command = self.transport.build_command(local_port, self.address, identity)
            supervisor = self.supervisor_factory(self.name)
            try:
                supervisor.start(command)
                self._supervisor = supervisor
                self.listener_port = local_port
            except BaseException:
                # a spawned process is never left without an owner
                if self._supervisor is not supervisor and supervisor.is_running:
                    self._discard(supervisor)
                raise

        logger.info(
            "SSH proxy started on port %s on machine name: %s IP: %s",
            local_port,
            self.name,
            self.address,
        )

    def _discard(self, supervisor: TunnelSupervisor) -> None:
        try:
            supervisor.stop()
        except TunnelStopError as e:
            logger.error("Error stopping tunnel on %s: %s", self.name, e)

    def stop_tunnel(self) -> bool:
        """Stop the tunnel if one is active.

        Returns
        -------
        bool
            True if a tunnel was stopped, False if none was active

        Notes
        -----
        Kill failures are logged; the tunnel state is cleared regardless.
        """
        with self._lock:
            supervisor = self._supervisor
            if supervisor is None:
                logger.warning("Machine %s does not have an active tunnel", self.name)
                return False

            port = self.listener_port
            self._supervisor = None
            self.listener_port = ""

            try:
                supervisor.stop()
            except TunnelStopError as e:
                logger.error("Error stopping tunnel on %s: %s", self.name, e)

        logger.info("SSH proxy on port %s for machine name: %s stopped", port, self.name)
        return True

    def destroy(self, provider: InstanceProvider) -> None:
        """Request deletion of the instance.

        Tunnel state is not touched; callers stop the tunnel first.

        Parameters
        ----------
        provider : InstanceProvider
            Provider that created the instance

        Raises
        ------
        DestroyError
            If the provider fails to delete the instance
        """
        with self._lock:
            if self.destroyed:
                logger.debug("Machine %s already destroyed, skipping", self.name)
                return

        try:
            provider.delete_instance(self.instance_id, self.region)
        except ProviderError as e:
            raise DestroyError(f"Could not delete machine name: {self.name}: {e}") from e

        with self._lock:
            self.destroyed = True


class MachineRegistry:
    """Ordered collection of machines, fixed in membership after construction."""

    def __init__(self, machines: Iterable[Machine] = ()) -> None:
        self._machines: tuple[Machine, ...] = tuple(machines)

    def __len__(self) -> int:
        return len(self._machines)

    def __iter__(self) -> Iterator[Machine]:
        return self.all()

    def all(self) -> Iterator[Machine]:
        """Return a fresh iterator over machines in registry order."""
        return iter(self._machines)

    def find_by_id(self, machine_id: int) -> Machine | None:
        for machine in self._machines:
            if machine.id == machine_id:
                return machine
        return None

    def ready(self) -> list[Machine]:
        return [machine for machine in self._machines if machine.is_ready()]

    def active(self) -> list[Machine]:
        """Machines with a running tunnel, in registry order."""
        return [machine for machine in self._machines if machine.tunnel_active]
