"""Distribution of instances across cloud regions."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from cloudproxy.constants import ALL_REGIONS
from cloudproxy.core.exceptions import AllocationError

logger = logging.getLogger(__name__)


def parse_region_filter(region_filter: str) -> list[str] | None:
    """Parse a comma-separated region filter.

    Parameters
    ----------
    region_filter : str
        ``"*"`` for all regions, or comma-separated region identifiers

    Returns
    -------
    list[str] | None
        Requested regions, or None when every region is allowed
    """
    if region_filter.strip() == ALL_REGIONS:
        return None

    return [region.strip() for region in region_filter.split(",") if region.strip()]


def select_regions(
    available_regions: Sequence[str], region_filter: str, total: int
) -> list[str]:
    """Select at most ``total`` candidate regions in provider order.

    Parameters
    ----------
    available_regions : Sequence[str]
        Regions offered by the provider, in provider order
    region_filter : str
        ``"*"`` or comma-separated allowed regions
    total : int
        Requested instance count, caps the number of selected regions

    Returns
    -------
    list[str]
        Selected regions, possibly empty
    """
    allowed = parse_region_filter(region_filter)
    selected: list[str] = []

    for region in available_regions:
        if len(selected) == total:
            break

        if allowed is not None and region not in allowed:
            continue

        if region not in selected:
            selected.append(region)

    return selected


def allocate_regions(
    available_regions: Sequence[str], region_filter: str, total: int
) -> dict[str, int]:
    """Distribute ``total`` instances across the allowed regions.

    Every selected region receives ``total // n`` instances and the first
    ``total % n`` regions, in selection order, receive one more. The result
    is deterministic for a given input.

    Parameters
    ----------
    available_regions : Sequence[str]
        Regions offered by the provider, in provider order
    region_filter : str
        ``"*"`` or comma-separated allowed regions
    total : int
        Number of instances to distribute, must be positive

    Returns
    -------
    dict[str, int]
        Region to instance count, in selection order

    Raises
    ------
    AllocationError
        If ``total`` is not positive or no region passes the filter
    """
    if total < 1:
        raise AllocationError(f"instance count must be positive, got {total}")

    selected = select_regions(available_regions, region_filter, total)

    if not selected:
        raise AllocationError("no regions to use")

    base_share, remainder = divmod(total, len(selected))
    allocation = {region: base_share for region in selected}

    for region in selected[:remainder]:
        allocation[region] += 1

    logger.debug("Allocated %s instances across %s regions: %s", total, len(selected), allocation)
    return allocation
