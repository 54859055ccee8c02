"""Provider registry and management.

This module implements a provider registry that lets cloudproxy create
instances on several clouds through the common InstanceProvider protocol.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from cloudproxy.core.interfaces import InstanceProvider
from cloudproxy.providers.aws import EC2Provider
from cloudproxy.providers.aws.compute import get_aws_credentials_error_message
from cloudproxy.providers.digitalocean import DigitalOceanProvider
from cloudproxy.providers.digitalocean.compute import (
    get_digitalocean_credentials_error_message,
)
from cloudproxy.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderError,
)

_PROVIDERS: dict[str, dict[str, Any]] = {}


def register_provider(
    name: str,
    factory: Callable[..., InstanceProvider],
    defaults: dict[str, Any],
    credentials_help: Callable[[], str],
) -> None:
    """Register a cloud provider implementation.

    Parameters
    ----------
    name : str
        Provider name (e.g., 'aws', 'digitalocean')
    factory : Callable[..., InstanceProvider]
        Called with the run configuration, returns a provider instance
    defaults : dict[str, Any]
        Provider-specific configuration defaults (e.g. ssh_username)
    credentials_help : Callable[[], str]
        Returns the message shown when credentials are missing
    """
    _PROVIDERS[name] = {
        "factory": factory,
        "defaults": defaults,
        "credentials_help": credentials_help,
    }


def _get(name: str) -> dict[str, Any]:
    if name not in _PROVIDERS:
        raise ValueError(f"Unknown provider: {name}")
    return _PROVIDERS[name]


def list_providers() -> list[str]:
    """List all registered provider names.

    Returns
    -------
    list[str]
        List of provider names
    """
    return list(_PROVIDERS.keys())


def get_provider_defaults(name: str) -> dict[str, Any]:
    """Get configuration defaults for a provider.

    Raises
    ------
    ValueError
        If provider is not registered
    """
    return dict(_get(name)["defaults"])


def get_credentials_help(name: str) -> str:
    """Get the missing-credentials message for a provider.

    Raises
    ------
    ValueError
        If provider is not registered
    """
    return _get(name)["credentials_help"]()


def create_provider(config: Any) -> InstanceProvider:
    """Create the provider named by ``config.provider``.

    Parameters
    ----------
    config : ProxyConfig
        Validated run configuration

    Returns
    -------
    InstanceProvider
        Provider instance

    Raises
    ------
    ValueError
        If provider is not registered
    """
    return _get(config.provider)["factory"](config)


__all__ = [
    "register_provider",
    "create_provider",
    "list_providers",
    "get_provider_defaults",
    "get_credentials_help",
    "ProviderError",
    "ProviderCredentialsError",
    "ProviderAPIError",
    "ProviderConnectionError",
]

register_provider(
    "aws",
    lambda config: EC2Provider(instance_type=config.size, image_id=config.image),
    {"ssh_username": EC2Provider.default_ssh_username},
    get_aws_credentials_error_message,
)
register_provider(
    "digitalocean",
    lambda config: DigitalOceanProvider(
        token=config.token, size=config.size, image=config.image
    ),
    {"ssh_username": DigitalOceanProvider.default_ssh_username},
    get_digitalocean_credentials_error_message,
)
