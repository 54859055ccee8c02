"""Global constants for cloudproxy.

This module contains application-wide constants that are used across multiple
components. Provider-specific values live with each provider.
"""

from enum import Enum

DEFAULT_PROVIDER = "aws"
"""Cloud provider used when none is configured."""

DEFAULT_INSTANCE_COUNT = 5
"""Number of instances provisioned when no count is given."""

MAX_INSTANCES_WITHOUT_FORCE = 50
"""Upper bound on the instance count unless ``force`` is set."""

DEFAULT_NAME_PREFIX = "cloud-proxy"
"""Prefix for generated instance names."""

DEFAULT_KEY_LOCATION = "~/.ssh/id_rsa"
"""Private key handed to the tunnel transport."""

ALL_REGIONS = "*"
"""Region filter value selecting every region the provider offers."""

DEFAULT_START_PORT = 55555
"""Local TCP port of the first SOCKS listener, later listeners increment from it."""

PROVISION_WAIT_SECONDS = 100
"""Fixed wait between instance creation and the single address lookup.

There is no readiness polling; instances that have no public address after
this wait are reported as not ready and skipped.
"""

TUNNEL_STOP_TIMEOUT_SECONDS = 5
"""Time allowed for a tunnel process to exit after termination is requested."""

DRAIN_JOIN_TIMEOUT_SECONDS = 2
"""Time allowed for a diagnostic drain thread to finish after its stop signal."""

UUID_SLICE_LENGTH = 8
"""Number of UUID hex characters appended to generated instance names."""

MIN_VALID_PORT = 1
MAX_VALID_PORT = 65535

PRIVILEGED_PORT_THRESHOLD = 1024
"""Ports below this value usually require root to bind locally."""

LOCALHOST = "127.0.0.1"

CONSOLE_HEADER = "-" * 60

CONSOLE_PROMPT = "[L]ist [C]onnect [D]isconnect [P]roxy configs [Q]uit [H]elp: "

CONSOLE_HELP = """
l              List current machines and connections
c [id] [port]  Create a socks proxy using the ID and then port
d [id]         Disconnect socks proxy via the host ID
p              Print proxychains and socksd configuration
q              Quit program
h              This message"""

EXIT_SUCCESS = 0
"""Exit code after an operator-initiated quit and full cleanup."""

EXIT_ERROR = 1
"""Exit code after interrupt-triggered shutdown or a fatal runtime error."""

EXIT_CONFIG_ERROR = 2
"""Exit code for invalid configuration detected before provisioning."""


class ConsoleState(str, Enum):
    """Console controller states."""

    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
