from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable

from cloudproxy.core.exceptions import DestroyError
from cloudproxy.core.interfaces import InstanceProvider
from cloudproxy.core.machine import Machine, MachineRegistry


class CleanupCoordinator:
    """Stops every tunnel and destroys every instance, at most once.

    Parameters
    ----------
    registry : MachineRegistry
        Machines provisioned in this run
    provider : InstanceProvider
        Provider that created the machines
    exit_func : Callable[[int], None] | None
        Called with the exit code after shutdown. If None, uses sys.exit

    Notes
    -----
    The quit command and the interrupt handler both call ``shutdown``. The
    shutdown lock is acquired without blocking and never released, so the
    first caller owns teardown and every later caller returns immediately.
    A separate lock makes ``cleanup`` itself run its pass only once.
    """

    def __init__(
        self,
        registry: MachineRegistry,
        provider: InstanceProvider,
        exit_func: Callable[[int], None] | None = None,
    ) -> None:
        self.registry = registry
        self.provider = provider
        self.exit_func = exit_func or sys.exit
        self._shutdown_lock = threading.Lock()
        self._cleanup_lock = threading.Lock()
        self.cleanup_done = False

    @property
    def shutting_down(self) -> bool:
        return self._shutdown_lock.locked()

    def cleanup(self) -> list[Exception]:
        """Stop tunnels and destroy machines in registry order.

        Returns
        -------
        list[Exception]
            Errors collected from failed deletions; empty on success or when
            cleanup already ran

        Notes
        -----
        A failure on one machine, including an unexpected provider or
        transport exception, is logged and never prevents processing of the
        remaining machines.
        """
        if not self._cleanup_lock.acquire(blocking=False):
            logging.info("Cleanup already in progress or done, skipping")
            return []

        errors: list[Exception] = []
        print("Cleaning up, and exiting")

        for machine in self.registry.all():
            try:
                self._cleanup_machine(machine)
            except DestroyError as e:
                logging.error("Could not delete machine name: %s (%s)", machine.name, e)
                errors.append(e)
            except Exception as e:
                logging.exception("Unexpected error cleaning up machine name: %s", machine.name)
                errors.append(e)

        if errors:
            logging.warning(
                "Cleanup completed with %s errors, you may need to delete instances manually",
                len(errors),
            )
        else:
            logging.info("Cleanup completed successfully")

        self.cleanup_done = True
        return errors

    def _cleanup_machine(self, machine: Machine) -> None:
        if machine.tunnel_active:
            machine.stop_tunnel()

        if machine.destroyed:
            return

        machine.destroy(self.provider)
        logging.info("Deleted machine name: %s", machine.name)

    def shutdown(self, exit_code: int) -> bool:
        """Run cleanup and exit, unless another caller already did.

        Parameters
        ----------
        exit_code : int
            Process exit code passed to ``exit_func``

        Returns
        -------
        bool
            False if shutdown was already triggered (only returned when
            ``exit_func`` does not exit)
        """
        if not self._shutdown_lock.acquire(blocking=False):
            logging.debug("Shutdown already triggered, ignoring exit code %s", exit_code)
            return False

        self.cleanup()
        self.exit_func(exit_code)
        return True
