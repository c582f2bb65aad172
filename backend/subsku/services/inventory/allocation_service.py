"""Sub-unit allocation: reserve, release and remove.

Each public method is a single atomic pool update, so the read of the
current availability and the write of the decision can never interleave
with another writer of the same SKU.
"""

from dataclasses import dataclass, field

import structlog

from subsku.config import settings
from subsku.models.enums import SubUnitStatus
from subsku.models.sku_pool import SubUnit
from subsku.services.exceptions import ValidationError
from subsku.services.inventory.availability import describe_pool
from subsku.services.inventory.pool_mutations import append_available, remove_tail_available, set_status
from subsku.services.inventory.pool_store import SubSkuPoolStore

logger = structlog.get_logger(__name__)


@dataclass
class ReservationOutcome:
    """Result of reserving sub-units for one line item."""

    sku: str
    reserved: list[str]
    # Sub-units synthesized because fewer than the requested quantity were Available
    created: list[str] = field(default_factory=list)
    # Sub-units added afterwards to catch up with the external quantity
    topped_up: list[str] = field(default_factory=list)
    available_count: int = 0


@dataclass
class ReleaseOutcome:
    """Result of returning sub-units to the pool."""

    sku: str
    released: list[str]
    unknown: list[str] = field(default_factory=list)
    removed_excess: list[str] = field(default_factory=list)
    available_count: int = 0


class AllocationService:
    """Reserve, release and remove sub-units of a SKU pool."""

    def __init__(self, store: SubSkuPoolStore, number_width: int | None = None):
        self.store = store
        self.number_width = number_width or settings.sub_unit_number_width

    async def reserve(self, sku: str, quantity: int, external_quantity: int | None = None) -> ReservationOutcome:
        """Reserve ``quantity`` sub-units of ``sku``.

        Takes the lowest-numbered Available sub-units, synthesizes any
        shortfall, marks the selection Unavailable and, when
        ``external_quantity`` is given, tops the pool up so its Available
        count is not below it.

        Returns:
            ReservationOutcome whose ``reserved`` has exactly ``quantity`` names

        Raises:
            SkuNotFound: No pool exists for the SKU
            ValidationError: Quantity is not positive
        """
        if quantity <= 0:
            raise ValidationError(f"Quantity must be positive, got {quantity}")

        width = self.number_width

        def mutate(sub_units: list[SubUnit]) -> ReservationOutcome:
            selected = describe_pool(sub_units).available_names[:quantity]
            created = append_available(sku, sub_units, quantity - len(selected), width)
            selected.extend(created)

            set_status(sub_units, selected, SubUnitStatus.UNAVAILABLE)

            topped_up: list[str] = []
            if external_quantity is not None:
                available_now = describe_pool(sub_units).available_count
                topped_up = append_available(sku, sub_units, external_quantity - available_now, width)

            return ReservationOutcome(sku=sku, reserved=selected, created=created, topped_up=topped_up)

        update = await self.store.update(sku, mutate)
        outcome = update.result
        outcome.available_count = update.availability.available_count

        logger.info(
            "Reserved sub-units",
            sku=sku,
            quantity=quantity,
            reserved=outcome.reserved,
            created=len(outcome.created),
            topped_up=len(outcome.topped_up),
            available_count=outcome.available_count,
            external_quantity=external_quantity,
        )
        return outcome

    async def release(self, sku: str, names: list[str], external_quantity: int | None = None) -> ReleaseOutcome:
        """Mark ``names`` Available again and trim any surplus.

        When ``external_quantity`` is given and the Available count now
        exceeds it, the excess is removed from the tail of the Available
        subsequence. Names not present in the pool are reported in
        ``unknown``.

        Raises:
            SkuNotFound: No pool exists for the SKU
        """

        def mutate(sub_units: list[SubUnit]) -> ReleaseOutcome:
            released = set_status(sub_units, names, SubUnitStatus.AVAILABLE)
            found = set(released)
            unknown = [name for name in names if name not in found]

            removed: list[str] = []
            if external_quantity is not None:
                target = max(external_quantity, 0)
                excess = describe_pool(sub_units).available_count - target
                removed = remove_tail_available(sku, sub_units, excess)

            return ReleaseOutcome(sku=sku, released=released, unknown=unknown, removed_excess=removed)

        update = await self.store.update(sku, mutate)
        outcome = update.result
        outcome.available_count = update.availability.available_count

        if outcome.unknown:
            logger.warning("Released sub-units not found in pool", sku=sku, unknown=outcome.unknown)
        logger.info(
            "Released sub-units",
            sku=sku,
            released=outcome.released,
            removed_excess=outcome.removed_excess,
            available_count=outcome.available_count,
            external_quantity=external_quantity,
        )
        return outcome

    async def remove_available(self, sku: str, quantity: int) -> list[str]:
        """Delete the last ``quantity`` Available sub-units.

        Returns:
            Removed names, highest suffix first

        Raises:
            SkuNotFound: No pool exists for the SKU
            InsufficientAvailable: Fewer than ``quantity`` are Available (pool unchanged)
        """
        if quantity <= 0:
            return []

        update = await self.store.update(sku, lambda sub_units: remove_tail_available(sku, sub_units, quantity))
        logger.info("Removed available sub-units", sku=sku, removed=update.result)
        return update.result
