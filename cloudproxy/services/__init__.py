"""Provider-agnostic services (tunnel transport and supervision)."""

from __future__ import annotations

from cloudproxy.services.transport import SSHTransport
from cloudproxy.services.tunnel import TunnelSupervisor

__all__ = [
    "SSHTransport",
    "TunnelSupervisor",
]
