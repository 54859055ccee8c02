"""Utility functions for cloudproxy."""

import uuid

from cloudproxy.constants import UUID_SLICE_LENGTH


def generate_instance_names(prefix: str, count: int) -> list[str]:
    """Generate ``count`` unique instance names of the form ``<prefix>-<hex>``.

    Parameters
    ----------
    prefix : str
        Name prefix
    count : int
        Number of names

    Returns
    -------
    list[str]
        Generated names
    """
    return [f"{prefix}-{uuid.uuid4().hex[:UUID_SLICE_LENGTH]}" for _ in range(count)]


def truncate_name(name: str, max_width: int = 28) -> str:
    """Truncate a name for column display, marking truncation with ``...``.

    Parameters
    ----------
    name : str
        Name to truncate
    max_width : int
        Maximum width in characters

    Returns
    -------
    str
        Name, shortened to ``max_width`` characters if needed
    """
    if len(name) <= max_width:
        return name

    return name[: max_width - 3] + "..."

