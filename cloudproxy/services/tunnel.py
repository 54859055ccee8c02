"""Subprocess lifecycle of a single SOCKS tunnel.

This module owns the process that carries one machine's dynamic port
forward. Starting a tunnel spawns the transport process and a daemon thread
that drains its diagnostic (stderr) stream so the process never blocks on a
full pipe. Stopping a tunnel terminates the process, fires the drain thread's
stop signal and waits for both to finish.

Classes
-------
TunnelSupervisor
    Start, drain and stop one tunnel process

Examples
--------
>>> supervisor = TunnelSupervisor(label="cloud-proxy-1a2b3c4d")
>>> supervisor.start(["ssh", "-D", "55555", "-N", "root@203.0.113.1"])
>>> supervisor.stop()
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable
from typing import IO, Any

from cloudproxy.constants import DRAIN_JOIN_TIMEOUT_SECONDS, TUNNEL_STOP_TIMEOUT_SECONDS
from cloudproxy.core.exceptions import TunnelAlreadyActive, TunnelSpawnError, TunnelStopError

logger = logging.getLogger(__name__)


class TunnelSupervisor:
    """Owns one tunnel subprocess and its diagnostic drain thread.

    Parameters
    ----------
    label : str
        Name used in log messages (usually the machine name)
    popen_factory : Callable[..., Any] | None
        Factory used to spawn the process. If None, uses subprocess.Popen

    Attributes
    ----------
    process : subprocess.Popen | None
        Running tunnel process, None when stopped
    stop_signal : threading.Event
        One-shot signal ending the drain thread
    """

    def __init__(
        self,
        label: str,
        popen_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.label = label
        self.popen_factory = popen_factory or subprocess.Popen
        self.process: Any | None = None
        self.stop_signal = threading.Event()
        self._drain_thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        """True while a process handle is held."""
        return self.process is not None

    def start(self, command: list[str]) -> None:
        """Spawn the tunnel process and start draining its stderr.

        Parameters
        ----------
        command : list[str]
            Transport command line

        Raises
        ------
        TunnelAlreadyActive
            If this supervisor already holds a process
        TunnelSpawnError
            If the process cannot be spawned
        """
        if self.process is not None:
            raise TunnelAlreadyActive(f"Tunnel for {self.label} is already running")

        logger.debug("Spawning tunnel for %s: %s", self.label, " ".join(command))

        try:
            process = self.popen_factory(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise TunnelSpawnError(f"Could not start tunnel for {self.label}: {e}") from e

        self.process = process
        self.stop_signal = threading.Event()
        self._drain_thread = threading.Thread(
            target=self._drain,
            args=(process.stderr, self.stop_signal),
            name=f"tunnel-drain-{self.label}",
            daemon=True,
        )
        self._drain_thread.start()

    def _drain(self, stream: IO[str] | None, stop_signal: threading.Event) -> None:
        if stream is None:
            return

        try:
            for line in iter(stream.readline, ""):
                if stop_signal.is_set():
                    break
                logger.debug("[%s] %s", self.label, line.rstrip(), extra={"stream": "stderr"})
        except (OSError, ValueError) as e:
            logger.debug("Diagnostic stream for %s closed: %s", self.label, e)

    def stop(self) -> None:
        """Terminate the process and stop the drain thread.

        State is cleared even when termination fails; failures are logged.

        Raises
        ------
        TunnelStopError
            If the process could not be terminated (raised after state is cleared)
        """
        process = self.process
        if process is None:
            return

        error: Exception | None = None

        try:
            process.terminate()
            try:
                process.wait(timeout=TUNNEL_STOP_TIMEOUT_SECONDS)
            except subprocess.TimeoutExpired:
                logger.warning("Tunnel for %s did not exit, killing it", self.label)
                process.kill()
                process.wait(timeout=TUNNEL_STOP_TIMEOUT_SECONDS)
        except ProcessLookupError:
            logger.debug("Tunnel process for %s already exited", self.label)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Error stopping tunnel for %s: %s", self.label, e)
            error = e

        self.stop_signal.set()

        drain_finished = True
        if self._drain_thread is not None:
            self._drain_thread.join(timeout=DRAIN_JOIN_TIMEOUT_SECONDS)
            drain_finished = not self._drain_thread.is_alive()
            if not drain_finished:
                logger.debug("Drain thread for %s still running after stop", self.label)

        # Closing while the drain thread is blocked in readline would block too.
        if drain_finished and process.stderr is not None:
            try:
                process.stderr.close()
            except OSError as e:
                logger.debug("Error closing diagnostic stream for %s: %s", self.label, e)

        self.process = None
        self._drain_thread = None

        if error is not None:
            raise TunnelStopError(f"Tunnel for {self.label} did not stop cleanly: {error}") from error
