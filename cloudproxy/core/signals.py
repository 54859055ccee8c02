"""Signal handling for interrupt-triggered cleanup and shutdown."""

from __future__ import annotations

import logging
import signal
import threading
import types
from typing import Protocol

from cloudproxy.constants import EXIT_ERROR


class ShutdownHandler(Protocol):
    """Protocol for the shutdown routine (CleanupCoordinator)."""

    def shutdown(self, exit_code: int) -> bool:
        """Clean up and exit with ``exit_code``."""
        ...


class ShutdownHandlerManager:
    """Thread-safe holder of the handler called by signal handlers.

    A single reentrant lock protects both getting and replacing the handler.
    Signal handlers run on the main thread, so a signal landing inside
    ``set`` re-acquires the lock there instead of blocking on it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._handler: ShutdownHandler | None = None

    def set(self, handler: ShutdownHandler | None) -> None:
        """Set the shutdown handler.

        Parameters
        ----------
        handler : ShutdownHandler | None
            The coordinator that will handle shutdown
        """
        with self._lock:
            self._handler = handler

    def get(self) -> ShutdownHandler | None:
        """Get the current shutdown handler.

        Returns
        -------
        ShutdownHandler | None
            The coordinator handling shutdown, or None if not set
        """
        with self._lock:
            return self._handler

    def handle_signal(self, signum: int, frame: types.FrameType | None) -> None:
        """Delegate an interrupt to the shutdown handler.

        Parameters
        ----------
        signum : int
            Signal number
        frame : types.FrameType | None
            Signal frame
        """
        handler = self.get()

        if handler is None:
            logging.debug("Signal %s received with no shutdown handler set", signum)
            raise KeyboardInterrupt

        logging.info("Interrupt received (signal %s), shutting down...", signum)
        handler.shutdown(EXIT_ERROR)


_handler_manager = ShutdownHandlerManager()


def setup_signal_handlers() -> None:
    """Route SIGINT and SIGTERM to the registered shutdown handler.

    Python runs signal handlers on the main thread between bytecodes, so
    the handler may interrupt the console loop at any point. The shutdown
    handler's exactly-once guard makes that safe.
    """

    def sigint_handler(signum: int, frame: types.FrameType | None) -> None:
        """Handle SIGINT (Ctrl+C) signal."""
        _handler_manager.handle_signal(signum, frame)

    def sigterm_handler(signum: int, frame: types.FrameType | None) -> None:
        """Handle SIGTERM signal."""
        _handler_manager.handle_signal(signum, frame)

    signal.signal(signal.SIGINT, sigint_handler)
    signal.signal(signal.SIGTERM, sigterm_handler)


def set_shutdown_handler(handler: ShutdownHandler | None) -> None:
    """Set the handler called on SIGINT and SIGTERM.

    Parameters
    ----------
    handler : ShutdownHandler | None
        The coordinator that will handle shutdown
    """
    _handler_manager.set(handler)


def get_shutdown_handler() -> ShutdownHandler | None:
    """Get the handler called on SIGINT and SIGTERM.

    Returns
    -------
    ShutdownHandler | None
        The coordinator handling shutdown, or None if not set
    """
    return _handler_manager.get()
