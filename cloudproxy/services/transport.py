"""OpenSSH client used as the tunnel transport."""

import logging
import os
import shutil
from pathlib import Path

import paramiko
from paramiko.pkey import UnknownKeyType

from cloudproxy.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


class SSHTransport:
    """Builds ``ssh`` command lines for dynamic (SOCKS) port forwarding.

    Parameters
    ----------
    username : str
        Remote login user
    executable : str
        SSH client binary (default: ssh)

    Attributes
    ----------
    username : str
        Remote login user
    executable : str
        SSH client binary
    """

    def __init__(self, username: str, executable: str = "ssh") -> None:
        self.username = username
        self.executable = executable

    def build_command(self, local_port: str, address: str, identity: str) -> list[str]:
        """Build the argv of a SOCKS tunnel process.

        Parameters
        ----------
        local_port : str
            Local port the SOCKS5 listener binds to
        address : str
            Remote host address
        identity : str
            Path to the SSH private key

        Returns
        -------
        list[str]
            Command line, no remote command and no host key verification
        """
        return [
            self.executable,
            "-D",
            str(local_port),
            "-N",
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "UserKnownHostsFile=/dev/null",
            "-o",
            "LogLevel=ERROR",
            "-i",
            str(Path(identity).expanduser()),
            f"{self.username}@{address}",
        ]

    def is_installed(self) -> bool:
        """Return True if the SSH client binary is on PATH."""
        return shutil.which(self.executable) is not None

    def validate_identity(self, identity: str) -> None:
        """Validate the SSH private key before any instance is created.

        Parameters
        ----------
        identity : str
            Path to the SSH private key, ``~`` is expanded

        Raises
        ------
        ConfigError
            If the key file is missing, unreadable, or not a private key

        Notes
        -----
        Passphrase-protected keys are accepted; ssh will use an agent or
        prompt for them.
        """
        key_path = Path(identity).expanduser()

        if not key_path.exists():
            raise ConfigError(f"SSH key file not found: {identity}")

        if not key_path.is_file():
            raise ConfigError(f"SSH key path is not a file: {identity}")

        if not os.access(key_path, os.R_OK):
            raise ConfigError(f"SSH key file is not readable: {identity}")

        try:
            paramiko.PKey.from_path(key_path)
        except (paramiko.PasswordRequiredException, TypeError):
            # encrypted PEM keys surface as TypeError from cryptography
            logger.debug("SSH key %s is passphrase protected", key_path)
        except (paramiko.SSHException, UnknownKeyType, ValueError) as e:
            raise ConfigError(f"SSH key file is not a valid private key: {identity} ({e})") from e
