#!/usr/bin/env python3
"""cloudproxy - SOCKS proxies through short-lived cloud instances."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

for _noisy_module in ["botocore", "boto3", "urllib3", "paramiko"]:
    logging.getLogger(_noisy_module).setLevel(logging.WARNING)

from cloudproxy import __version__  # noqa: E402
from cloudproxy.core.allocator import allocate_regions  # noqa: E402
from cloudproxy.core.config import ConfigLoader, ProxyConfig  # noqa: E402
from cloudproxy.core.exceptions import ConfigError  # noqa: E402
from cloudproxy.core.interfaces import InstanceProvider  # noqa: E402
from cloudproxy.core.session import ProxySession  # noqa: E402
from cloudproxy.providers import create_provider  # noqa: E402
from cloudproxy.services.transport import SSHTransport  # noqa: E402
from cloudproxy.cli.main import main  # noqa: E402

logger = logging.getLogger(__name__)


class CloudProxy:
    """Main CLI interface for cloudproxy.

    Parameters
    ----------
    provider_factory : Callable[[ProxyConfig], InstanceProvider] | None
        Builds the cloud provider from the run configuration. If None, uses
        the provider registry
    session_factory : Callable[..., ProxySession] | None
        Builds the session driving a run. If None, uses ProxySession
    """

    def __init__(
        self,
        provider_factory: Callable[[ProxyConfig], InstanceProvider] | None = None,
        session_factory: Callable[..., ProxySession] | None = None,
    ) -> None:
        self._config_loader = ConfigLoader()
        self._provider_factory = provider_factory or create_provider
        self._session_factory = session_factory or ProxySession

    def _build_config(self, require_key: bool = True, **overrides: Any) -> ProxyConfig:
        for field in ("key", "token"):
            if overrides.get(field) is not None:
                overrides[field] = str(overrides[field])
        return self._config_loader.build(overrides, require_key=require_key)

    def run(
        self,
        key: str | None = None,
        provider: str | None = None,
        token: str | None = None,
        key_location: str | None = None,
        count: int | None = None,
        name: str | None = None,
        regions: str | list[str] | tuple[str, ...] | None = None,
        force: bool | None = None,
        start_tcp: int | None = None,
        wait: float | None = None,
        verbose: bool = False,
    ) -> None:
        """Create proxy instances, open SOCKS tunnels and start the console.

        Parameters
        ----------
        key : str | None
            SSH key name (AWS) or fingerprint (DigitalOcean) registered with the
            provider
        provider : str | None
            Cloud provider: aws or digitalocean
        token : str | None
            API token for token-based providers
        key_location : str | None
            Path of the matching SSH private key
        count : int | None
            Number of instances to create
        name : str | None
            Instance name prefix
        regions : str | list[str] | tuple[str, ...] | None
            Comma separated regions, or ``*`` for all
        force : bool | None
            Allow more than 50 instances
        start_tcp : int | None
            First local SOCKS port
        wait : float | None
            Seconds to wait after creating instances
        verbose : bool
            Enable debug logging
        """
        if verbose:
            logging.getLogger().setLevel(logging.DEBUG)
            logging.debug("Verbose mode enabled")

        config = self._build_config(
            key=key,
            provider=provider,
            token=token,
            key_location=key_location,
            count=count,
            name=name,
            regions=regions,
            force=force,
            start_tcp=start_tcp,
            wait=wait,
        )

        transport = SSHTransport(username=config.ssh_username)
        if not transport.is_installed():
            raise ConfigError(f"{transport.executable} executable not found on PATH")
        transport.validate_identity(config.identity)

        instance_provider = self._provider_factory(config)
        session = self._session_factory(config, instance_provider, transport=transport)
        session.run()

    def regions(self, provider: str | None = None, token: str | None = None) -> list[str]:
        """List the regions a provider offers, in provider order."""
        config = self._build_config(require_key=False, provider=provider, token=token)
        return self._provider_factory(config).list_regions()

    def allocate(
        self,
        provider: str | None = None,
        token: str | None = None,
        count: int | None = None,
        regions: str | list[str] | tuple[str, ...] | None = None,
        force: bool | None = None,
    ) -> dict[str, int]:
        """Show how instances would be spread over regions without creating any.

        Returns
        -------
        dict[str, int]
            Instances per region, in allocation order
        """
        config = self._build_config(
            require_key=False,
            provider=provider,
            token=token,
            count=count,
            regions=regions,
            force=force,
        )
        available = self._provider_factory(config).list_regions()
        return allocate_regions(available, config.regions, config.count)

    def version(self) -> str:
        """Print the cloudproxy version."""
        return __version__


if __name__ == "__main__":
    main()
