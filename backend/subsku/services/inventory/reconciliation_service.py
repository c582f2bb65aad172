"""Reconcile a pool's Available count with Shopify's reported quantity."""

from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from subsku.config import settings
from subsku.models.enums import InventoryLogReason
from subsku.models.sku_pool import SubUnit
from subsku.services.inventory.availability import describe_pool, new_sub_units
from subsku.services.inventory.pool_mutations import append_available, remove_tail_available
from subsku.services.inventory.pool_store import SubSkuPoolStore
from subsku.services.inventory_log import InventoryLogSink, sub_unit_entries

logger = structlog.get_logger(__name__)


class ReconcileAction(StrEnum):
    CREATED = "created"
    ADDED = "added"
    REMOVED = "removed"
    NONE = "none"


@dataclass
class ReconcileOutcome:
    """What reconciliation did to one pool."""

    sku: str
    action: ReconcileAction
    local_quantity: int
    external_quantity: int
    sub_units: list[str] = field(default_factory=list)

    @property
    def quantity(self) -> int:
        return len(self.sub_units)


class ReconciliationService:
    """Close the gap between local Available count and an external quantity."""

    def __init__(
        self,
        store: SubSkuPoolStore,
        log_sink: InventoryLogSink,
        number_width: int | None = None,
    ):
        self.store = store
        self.log_sink = log_sink
        self.number_width = number_width or settings.sub_unit_number_width

    async def reconcile_to_external(
        self,
        sku: str,
        external_quantity: int,
        *,
        reference: str | None = None,
    ) -> ReconcileOutcome:
        """Add or remove Available sub-units until the count equals ``external_quantity``.

        Creates the pool when it does not exist. Negative quantities
        (oversold items) count as zero. Calling twice with the same quantity
        changes nothing the second time.

        Args:
            sku: Base SKU
            external_quantity: Quantity reported by Shopify
            reference: Free text stored on the log rows (e.g. product title)
        """
        target = max(external_quantity, 0)
        width = self.number_width

        outcome: ReconcileOutcome | None = None
        if await self.store.get(sku) is None:
            created = new_sub_units(sku, [], target, width)
            if await self.store.create(sku, created):
                outcome = ReconcileOutcome(
                    sku=sku,
                    action=ReconcileAction.CREATED,
                    local_quantity=0,
                    external_quantity=external_quantity,
                    sub_units=[sub_unit.name for sub_unit in created],
                )

        if outcome is None:

            def mutate(sub_units: list[SubUnit]) -> ReconcileOutcome:
                local = describe_pool(sub_units).available_count
                if local < target:
                    action = ReconcileAction.ADDED
                    names = append_available(sku, sub_units, target - local, width)
                elif local > target:
                    action = ReconcileAction.REMOVED
                    names = remove_tail_available(sku, sub_units, local - target)
                else:
                    action = ReconcileAction.NONE
                    names = []
                return ReconcileOutcome(
                    sku=sku,
                    action=action,
                    local_quantity=local,
                    external_quantity=external_quantity,
                    sub_units=names,
                )

            outcome = (await self.store.update(sku, mutate)).result

        logger.info(
            "Reconciled SKU pool",
            sku=sku,
            action=outcome.action.value,
            quantity=outcome.quantity,
            local_quantity=outcome.local_quantity,
            external_quantity=external_quantity,
        )

        if outcome.action in (ReconcileAction.CREATED, ReconcileAction.ADDED):
            reason = InventoryLogReason.INVENTORY_UPDATE
        elif outcome.action == ReconcileAction.REMOVED:
            reason = InventoryLogReason.INVENTORY_REDUCE
        else:
            return outcome

        await self.log_sink.append(sub_unit_entries(sku, outcome.sub_units, reason, reference=reference))
        return outcome

    async def add_sub_units(
        self,
        sku: str,
        quantity: int,
        *,
        reason: InventoryLogReason = InventoryLogReason.INVENTORY_UPDATE,
        reference: str | None = None,
    ) -> list[str]:
        """Append ``quantity`` fresh Available sub-units, creating the pool if needed."""
        if quantity <= 0:
            return []

        width = self.number_width
        if await self.store.get(sku) is None:
            created = new_sub_units(sku, [], quantity, width)
            if await self.store.create(sku, created):
                names = [sub_unit.name for sub_unit in created]
                await self.log_sink.append(sub_unit_entries(sku, names, reason, reference=reference))
                return names

        update = await self.store.update(sku, lambda sub_units: append_available(sku, sub_units, quantity, width))
        logger.info("Added sub-units", sku=sku, added=update.result)
        await self.log_sink.append(sub_unit_entries(sku, update.result, reason, reference=reference))
        return update.result
