"""Availability query over a sub-unit pool.

Sub-unit names look like ``{sku}-{NNNN}``. Storage order is insertion order,
which is not guaranteed to follow the numeric suffix, so everything that
relies on "first available" or "last available" goes through
``sort_by_suffix`` first.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from subsku.models.enums import SubUnitStatus
from subsku.models.sku_pool import SubUnit


@dataclass
class PoolAvailability:
    """Counts and ordered available sub-units of one pool."""

    total_count: int = 0
    available_count: int = 0
    available_sub_units: list[SubUnit] = field(default_factory=list)

    @property
    def unavailable_count(self) -> int:
        return self.total_count - self.available_count

    @property
    def available_names(self) -> list[str]:
        return [sub_unit.name for sub_unit in self.available_sub_units]


def suffix_number(name: str | None) -> int:
    """Numeric suffix of a sub-unit name; 0 when missing or non-numeric."""
    if not name:
        return 0
    tail = name.rsplit("-", 1)[-1]
    return int(tail) if tail.isdecimal() else 0


def sort_by_suffix(sub_units: Iterable[SubUnit]) -> list[SubUnit]:
    """Return sub-units ordered ascending by numeric suffix (stable)."""
    return sorted(sub_units, key=lambda sub_unit: suffix_number(sub_unit.name))


def parse_sub_units(raw: Any) -> list[SubUnit] | None:
    """Parse a stored sub-unit list.

    Returns None when the stored value is not a list. Entries that are not
    mappings are dropped; an unknown status is treated as unavailable so a
    corrupted entry is never handed out.
    """
    if not isinstance(raw, list):
        return None

    sub_units = []
    for entry in raw:
        if isinstance(entry, SubUnit):
            sub_units.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        status = entry.get("status")
        sub_units.append(
            SubUnit(
                name=str(entry.get("name") or ""),
                status=SubUnitStatus.AVAILABLE if status == SubUnitStatus.AVAILABLE else SubUnitStatus.UNAVAILABLE,
            )
        )
    return sub_units


def describe_pool(sub_units: Sequence[SubUnit] | None) -> PoolAvailability:
    """Derive total/available counts and the sorted available subsequence.

    A missing pool (None) yields an all-zero result.
    """
    if sub_units is None:
        return PoolAvailability()

    available = [sub_unit for sub_unit in sort_by_suffix(sub_units) if sub_unit.is_available]
    return PoolAvailability(
        total_count=len(sub_units),
        available_count=len(available),
        available_sub_units=available,
    )


def max_suffix(sub_units: Iterable[SubUnit]) -> int:
    """Highest numeric suffix present across the whole pool (0 when empty)."""
    return max((suffix_number(sub_unit.name) for sub_unit in sub_units), default=0)


class SubUnitList(list[SubUnit]):
    """Sub-units of one pool plus the highest number the pool ever issued.

    ``last_number`` only grows: ``append``/``extend`` raise it to the added
    suffixes and removals leave it alone, so a removed number is never
    handed out again.
    """

    def __init__(self, sub_units: Iterable[SubUnit] = (), last_number: int = 0):
        super().__init__(sub_units)
        self.last_number = max(last_number, max_suffix(self))

    def append(self, sub_unit: SubUnit) -> None:
        super().append(sub_unit)
        self.last_number = max(self.last_number, suffix_number(sub_unit.name))

    def extend(self, sub_units: Iterable[SubUnit]) -> None:
        added = list(sub_units)
        super().extend(added)
        self.last_number = max(self.last_number, max_suffix(added))


def next_number(sub_units: Iterable[SubUnit]) -> int:
    """Number for the next new sub-unit.

    Follows both the highest suffix present and, for a SubUnitList, the
    highest number issued before.
    """
    highest = max_suffix(sub_units)
    if isinstance(sub_units, SubUnitList):
        highest = max(highest, sub_units.last_number)
    return highest + 1


def format_sub_unit_name(sku: str, number: int, width: int = 4) -> str:
    return f"{sku}-{number:0{width}d}"


def new_sub_units(sku: str, existing: Iterable[SubUnit], count: int, width: int = 4) -> list[SubUnit]:
    """Create ``count`` Available sub-units numbered after every number issued so far."""
    start = next_number(existing)
    return [
        SubUnit(name=format_sub_unit_name(sku, number, width), status=SubUnitStatus.AVAILABLE)
        for number in range(start, start + count)
    ]
