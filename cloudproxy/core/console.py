"""Line-oriented operator console for listing and managing tunnels."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from cloudproxy.cli.parsing import parse_machine_id, parse_port_parameter
from cloudproxy.constants import (
    CONSOLE_HEADER,
    CONSOLE_HELP,
    CONSOLE_PROMPT,
    EXIT_SUCCESS,
    PRIVILEGED_PORT_THRESHOLD,
    ConsoleState,
)
from cloudproxy.core.cleanup import CleanupCoordinator
from cloudproxy.core.exceptions import TunnelError
from cloudproxy.core.machine import MachineRegistry
from cloudproxy.core.reports import format_proxychains, format_socksd
from cloudproxy.utils import truncate_name

logger = logging.getLogger(__name__)

LIST_HEADER = f"{'ID':<5} {'NAME':<28} {'ADDRESS':<22} {'PORT':<7} {'CONNECTED':<9}"


class ConsoleController:
    """Reads commands from the operator and applies them to the registry.

    Parameters
    ----------
    registry : MachineRegistry
        Machines provisioned in this run
    coordinator : CleanupCoordinator
        Shutdown routine run by the quit command
    identity : str
        SSH private key used for new tunnels
    stdin : TextIO | None
        Command input (default: sys.stdin)
    stdout : TextIO | None
        Console output (default: sys.stdout)
    """

    def __init__(
        self,
        registry: MachineRegistry,
        coordinator: CleanupCoordinator,
        identity: str,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.registry = registry
        self.coordinator = coordinator
        self.identity = identity
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.state = ConsoleState.RUNNING

    def _write(self, text: str = "") -> None:
        print(text, file=self.stdout)

    def _warn(self, text: str) -> None:
        self._write(f"[WARNING] {text}")

    def run(self) -> None:
        """Run the command loop until quit or end of input."""
        while self.state == ConsoleState.RUNNING and not self.coordinator.shutting_down:
            self._write(CONSOLE_HEADER)
            print(CONSOLE_PROMPT, end="", file=self.stdout, flush=True)

            line = self.stdin.readline()
            if line == "":
                self._write()
                logger.info("End of input, quitting")
                self.quit()
                break

            self.handle_line(line)

    def handle_line(self, line: str) -> None:
        """Dispatch one input line.

        Parameters
        ----------
        line : str
            Raw input line

        Notes
        -----
        Unknown commands and wrong argument counts are ignored. Malformed
        numbers are reported and the loop continues.
        """
        tokens = line.split()
        if not tokens:
            return

        command = tokens[0].lower()
        args = tokens[1:]

        try:
            if command == "l" and not args:
                self.list_machines()
            elif command == "c" and len(args) == 2:
                self.connect(parse_machine_id(args[0]), parse_port_parameter(args[1]))
            elif command == "d" and len(args) == 1:
                self.disconnect(parse_machine_id(args[0]))
            elif command == "p" and not args:
                self.print_reports()
            elif command == "h" and not args:
                self._write(CONSOLE_HELP)
            elif command == "q" and not args:
                self.quit()
            else:
                logger.debug("Ignoring input: %r", line)
        except ValueError as e:
            logger.error("%s", e)
            self._write(f"[ERROR] {e}")

    def list_machines(self) -> None:
        self._write(LIST_HEADER)
        for machine in self.registry.all():
            info = machine.snapshot()
            self._write(
                f"{info['id']:<5} {truncate_name(info['name'], 28):<28} "
                f"{info['address'] or '-':<22} {info['listener_port'] or '-':<7} "
                f"{str(info['tunnel_active']):<9}"
            )

    def connect(self, machine_id: int, port: int) -> None:
        """Start a tunnel on ``port`` for the machine with ``machine_id``."""
        machine = self.registry.find_by_id(machine_id)
        if machine is None:
            logger.debug("No machine with id %s", machine_id)
            return

        if machine.tunnel_active:
            self._warn(
                "Machine already has an active socks proxy. "
                "Please disconnect the tunnel before creating a new one."
            )
            return

        if port < PRIVILEGED_PORT_THRESHOLD:
            logger.warning(
                "Port %s is a privileged port (< %s). "
                "Root privileges may be required on the local machine.",
                port,
                PRIVILEGED_PORT_THRESHOLD,
            )

        try:
            machine.start_tunnel(str(port), self.identity)
        except TunnelError as e:
            logger.warning("%s", e)
            self._warn(str(e))

    def disconnect(self, machine_id: int) -> None:
        """Stop the tunnel of the machine with ``machine_id``."""
        machine = self.registry.find_by_id(machine_id)
        if machine is None:
            logger.debug("No machine with id %s", machine_id)
            return

        if not machine.tunnel_active:
            self._warn("Machine does not have an active tunnel")
            return

        machine.stop_tunnel()

    def print_reports(self) -> None:
        self._write("proxychains config")
        self._write(format_proxychains(self.registry.all()))
        self._write("socksd config")
        self._write(format_socksd(self.registry.all()))

    def quit(self) -> None:
        self.state = ConsoleState.SHUTTING_DOWN
        self.coordinator.shutdown(EXIT_SUCCESS)
