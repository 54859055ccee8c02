"""Provisioning flow of one cloudproxy run."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TextIO

from cloudproxy.core.allocator import allocate_regions
from cloudproxy.core.cleanup import CleanupCoordinator
from cloudproxy.core.config import ProxyConfig
from cloudproxy.core.console import ConsoleController
from cloudproxy.core.exceptions import ProvisionError, ReadinessError, TunnelError
from cloudproxy.core.interfaces import InstanceInfo, InstanceProvider, TunnelTransport
from cloudproxy.core.machine import Machine, MachineRegistry
from cloudproxy.core.reports import format_proxychains, format_socksd
from cloudproxy.core.signals import set_shutdown_handler, setup_signal_handlers
from cloudproxy.providers.exceptions import ProviderError
from cloudproxy.services.transport import SSHTransport
from cloudproxy.services.tunnel import TunnelSupervisor

logger = logging.getLogger(__name__)


class ProxySession:
    """Provision instances, open tunnels and hand control to the console.

    Parameters
    ----------
    config : ProxyConfig
        Validated run configuration
    provider : InstanceProvider
        Cloud provider client
    transport : TunnelTransport | None
        Tunnel command builder. If None, uses SSHTransport with the
        configured username
    supervisor_factory : Callable[[str], TunnelSupervisor] | None
        Factory for tunnel supervisors, mainly for testing
    sleep : Callable[[float], None] | None
        Used for the fixed post-provisioning wait (default: time.sleep)
    exit_func : Callable[[int], None] | None
        Passed to the CleanupCoordinator (default: sys.exit)
    """

    def __init__(
        self,
        config: ProxyConfig,
        provider: InstanceProvider,
        transport: TunnelTransport | None = None,
        supervisor_factory: Callable[[str], TunnelSupervisor] | None = None,
        sleep: Callable[[float], None] | None = None,
        exit_func: Callable[[int], None] | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.transport = transport or SSHTransport(username=config.ssh_username)
        self.supervisor_factory = supervisor_factory
        self.sleep = sleep or time.sleep
        self.exit_func = exit_func
        self.registry = MachineRegistry()
        self.coordinator: CleanupCoordinator | None = None

    def allocate(self) -> dict[str, int]:
        """Allocate the configured count across the provider's regions.

        Raises
        ------
        AllocationError
            If no configured region is offered by the provider
        """
        available_regions = self.provider.list_regions()
        return allocate_regions(available_regions, self.config.regions, self.config.count)

    def create_instances(self, allocation: dict[str, int]) -> list[InstanceInfo]:
        """Create instances region by region.

        Raises
        ------
        ProvisionError
            On the first failed create call; instances already created are
            not rolled back
        """
        created: list[InstanceInfo] = []

        for region, count in allocation.items():
            logger.info("Creating %s instances in region %s", count, region)
            try:
                created.extend(
                    self.provider.create_instances(
                        self.config.name, region, self.config.key, count
                    )
                )
            except ProviderError as e:
                names = ", ".join(instance.name for instance in created) or "none"
                raise ProvisionError(
                    f"There was an error creating the instances in {region}: {e}. "
                    f"Instances already created: {names}"
                ) from e

        return created

    def build_registry(self, instances: list[InstanceInfo]) -> MachineRegistry:
        machines = [
            Machine.from_instance(
                machine_id,
                instance,
                self.transport,
                supervisor_factory=self.supervisor_factory,
            )
            for machine_id, instance in enumerate(instances, start=1)
        ]
        self.registry = MachineRegistry(machines)
        self.coordinator = CleanupCoordinator(
            self.registry, self.provider, exit_func=self.exit_func
        )
        return self.registry

    def provision(self) -> MachineRegistry:
        """Allocate, create, wait once, and build the registry.

        Returns
        -------
        MachineRegistry
            Machines in creation order
        """
        allocation = self.allocate()
        instances = self.create_instances(allocation)
        registry = self.build_registry(instances)
        set_shutdown_handler(self.coordinator)

        logger.info("Instances deployed. Waiting %s seconds...", self.config.wait)
        self.sleep(self.config.wait)

        return registry

    def start_tunnels(self) -> None:
        """Resolve each address once and start tunnels on sequential ports.

        Notes
        -----
        The port counter advances once per ready machine, also when its
        tunnel fails to start, and never for machines that are not ready.
        """
        port = self.config.start_tcp

        for machine in self.registry.all():
            try:
                machine.resolve_address(self.provider)
            except ReadinessError as e:
                logger.warning("%s", e)

            if not machine.is_ready():
                logger.warning("Machine name: %s is not ready yet. Skipping...", machine.name)
                continue

            try:
                machine.start_tunnel(str(port), self.config.identity)
            except TunnelError as e:
                logger.error(
                    "Could not start SSH proxy on machine name: %s Error: %s", machine.name, e
                )
            port += 1

    def print_reports(self, stdout: TextIO | None = None) -> None:
        print("proxychains config", file=stdout)
        print(format_proxychains(self.registry.all()), file=stdout)
        print("socksd config", file=stdout)
        print(format_socksd(self.registry.all()), file=stdout)

    def run(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        """Run the whole session until the operator quits or an interrupt arrives.

        Interrupts before the registry exists raise KeyboardInterrupt as usual;
        afterwards they run the same shutdown as the quit command. Any other
        exception raised once the registry exists destroys its instances
        before propagating.
        """
        setup_signal_handlers()

        try:
            self.provision()
            self.start_tunnels()
            self.print_reports(stdout)

            logger.info("Please CTRL-C or type q to destroy instances")

            console = ConsoleController(
                self.registry,
                self.coordinator,
                identity=self.config.identity,
                stdin=stdin,
                stdout=stdout,
            )
            console.run()
        except Exception:
            if self.coordinator is not None:
                logger.error("Unexpected error, destroying the instances of this run")
                self.coordinator.cleanup()
            raise
        finally:
            set_shutdown_handler(None)
