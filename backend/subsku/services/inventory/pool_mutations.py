"""In-place mutations of a sub-unit list.

These run inside ``SubSkuPoolStore.update`` and must stay free of I/O.
"""

from collections.abc import Iterable

from subsku.models.enums import SubUnitStatus
from subsku.models.sku_pool import SubUnit
from subsku.services.exceptions import InsufficientAvailable
from subsku.services.inventory.availability import describe_pool, new_sub_units


def append_available(sku: str, sub_units: list[SubUnit], count: int, width: int = 4) -> list[str]:
    """Append ``count`` fresh Available sub-units; return their names."""
    if count <= 0:
        return []
    created = new_sub_units(sku, sub_units, count, width)
    sub_units.extend(created)
    return [sub_unit.name for sub_unit in created]


def set_status(sub_units: list[SubUnit], names: Iterable[str], status: SubUnitStatus) -> list[str]:
    """Set ``status`` on every named sub-unit; return the names found in the pool."""
    wanted = set(names)
    found = []
    for sub_unit in sub_units:
        if sub_unit.name in wanted:
            sub_unit.status = status
            found.append(sub_unit.name)
    return found


def remove_tail_available(sku: str, sub_units: list[SubUnit], count: int) -> list[str]:
    """Delete the ``count`` Available sub-units with the highest suffixes.

    Unavailable sub-units are never touched; the list is left unchanged when
    there are not enough Available ones.

    Raises:
        InsufficientAvailable: Fewer than ``count`` Available sub-units
    """
    if count <= 0:
        return []

    availability = describe_pool(sub_units)
    if availability.available_count < count:
        raise InsufficientAvailable(sku, requested=count, available=availability.available_count)

    to_remove = availability.available_names[-count:]
    doomed = set(to_remove)
    sub_units[:] = [sub_unit for sub_unit in sub_units if sub_unit.name not in doomed]
    # Highest suffix first
    return list(reversed(to_remove))
