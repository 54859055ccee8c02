"""CLI argument parsing and handling."""

from __future__ import annotations

from cloudproxy.cli.parsing import (
    parse_machine_id,
    parse_port_parameter,
    parse_regions_parameter,
)

__all__ = [
    "parse_machine_id",
    "parse_port_parameter",
    "parse_regions_parameter",
]
