"""Exceptions raised by the cloudproxy core."""

from __future__ import annotations


class CloudProxyError(Exception):
    """Base class for cloudproxy errors."""


class ConfigError(CloudProxyError):
    """Invalid or incomplete configuration, fatal before provisioning."""


class AllocationError(CloudProxyError):
    """No usable regions for the requested allocation."""


class ProvisionError(CloudProxyError):
    """Instance creation failed.

    Instances created for other regions in the same run are not rolled back.
    """


class ReadinessError(CloudProxyError):
    """The network address of a machine could not be resolved."""


class TunnelError(CloudProxyError):
    """Base class for tunnel lifecycle errors."""


class TunnelSpawnError(TunnelError):
    """The tunnel transport process could not be started."""


class TunnelAlreadyActive(TunnelError):
    """A tunnel is already running for the machine."""


class TunnelStopError(TunnelError):
    """The tunnel process did not exit cleanly."""


class DestroyError(CloudProxyError):
    """The provider refused or failed to delete an instance."""
