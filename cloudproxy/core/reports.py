"""Proxy client configuration blocks for the active tunnels."""

from __future__ import annotations

import json
from collections.abc import Iterable

from cloudproxy.constants import LOCALHOST
from cloudproxy.core.machine import Machine


def _active_ports(machines: Iterable[Machine]) -> list[str]:
    ports = []
    for machine in machines:
        snapshot = machine.snapshot()
        if snapshot["tunnel_active"]:
            ports.append(snapshot["listener_port"])
    return ports


def format_proxychains(machines: Iterable[Machine]) -> str:
    """Return proxychains ``[ProxyList]`` lines, one per active tunnel."""
    return "\n".join(f"socks5 {LOCALHOST} {port}" for port in _active_ports(machines))


def format_socksd(machines: Iterable[Machine]) -> str:
    """Return a socksd ``upstreams`` block, one entry per active tunnel."""
    entries = [
        json.dumps(
            {"type": "socks5", "address": f"{LOCALHOST}:{port}"}, separators=(",", ":")
        )
        for port in _active_ports(machines)
    ]
    return '"upstreams": [\n' + ",\n".join(entries) + "\n]"
