"""CLI and console argument parsing utilities."""

from __future__ import annotations

from cloudproxy.constants import MAX_VALID_PORT, MIN_VALID_PORT


def parse_port_parameter(port: str | int) -> int:
    """Parse a port value with validation.

    Parameters
    ----------
    port : str | int
        Port number, as typed by the operator or passed on the command line

    Returns
    -------
    int
        Port number

    Raises
    ------
    ValueError
        If the value is not numeric or outside the valid range (1-65535)
    """
    if isinstance(port, bool):
        raise ValueError(f"Invalid port value: '{port}' is not numeric")

    try:
        value = int(str(port).strip())
    except ValueError:
        raise ValueError(f"Invalid port value: '{port}' is not numeric") from None

    if value < MIN_VALID_PORT or value > MAX_VALID_PORT:
        raise ValueError(
            f"Invalid port value: {value}. Port must be between "
            f"{MIN_VALID_PORT} and {MAX_VALID_PORT}"
        )

    return value


def parse_machine_id(machine_id: str) -> int:
    """Parse a machine identifier typed at the console.

    Raises
    ------
    ValueError
        If the value is not an integer
    """
    try:
        return int(machine_id)
    except ValueError:
        raise ValueError(f"Invalid machine id: '{machine_id}' is not numeric") from None


def parse_regions_parameter(regions: str | list[str] | tuple[str, ...]) -> str:
    """Normalize a region filter into the comma-separated form.

    Fire turns ``--regions=nyc1,sfo2`` into a tuple, so both forms are accepted.
    """
    if isinstance(regions, (list, tuple)):
        return ",".join(str(region).strip() for region in regions)

    return str(regions).strip()
