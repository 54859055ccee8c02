"""Core cloudproxy functionality."""

from __future__ import annotations

from cloudproxy.core.exceptions import (
    AllocationError,
    CloudProxyError,
    ConfigError,
    DestroyError,
    ProvisionError,
    ReadinessError,
    TunnelAlreadyActive,
    TunnelError,
    TunnelSpawnError,
    TunnelStopError,
)
from cloudproxy.core.interfaces import InstanceInfo, InstanceProvider, TunnelTransport

__all__ = [
    "AllocationError",
    "CloudProxyError",
    "ConfigError",
    "DestroyError",
    "InstanceInfo",
    "InstanceProvider",
    "ProvisionError",
    "ReadinessError",
    "TunnelAlreadyActive",
    "TunnelError",
    "TunnelSpawnError",
    "TunnelStopError",
    "TunnelTransport",
]
