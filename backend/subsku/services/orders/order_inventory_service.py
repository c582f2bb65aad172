"""Order-driven sub-unit flows.

Order creation reserves sub-units per line item and records them in the
assignment ledger. Cancellation, return, refund and edit removals release
the tail of a line item's ledger entry; edit additions reserve more.

Line items of one event are processed concurrently; line items that share
a SKU take turns through a per-SKU lock.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from subsku.models.enums import InventoryLogReason
from subsku.models.inventory_log import InventoryLogEntry
from subsku.services.exceptions import ErrorKind, ExternalCallFailure, ServiceError
from subsku.services.external.shopify import ShopifyService
from subsku.services.external.shopify_models import ShopifyOrder
from subsku.services.inventory.allocation_service import AllocationService
from subsku.services.inventory.exceptions import SkuNotFound
from subsku.services.inventory_log import InventoryLogSink, sub_unit_entries
from subsku.services.orders.assignment_ledger import Assignments, consume_for_release, record_assignment
from subsku.services.orders.exceptions import OrderNotFound
from subsku.services.orders.processed_orders import ProcessedOrderStore
from subsku.services.results import LineItemResult, OrderBatchResult
from subsku.utils.keyed_lock import KeyedLock
from subsku.webhooks.events import (
    LineItemInput,
    OrderCancelled,
    OrderCreated,
    OrderEdited,
    OrderReturned,
    RefundCreated,
)

logger = structlog.get_logger(__name__)


@dataclass
class _ReleaseRequest:
    line_item_id: int
    sku: str | None
    quantity: int


class OrderInventoryService:
    """Allocate and release sub-units as orders change."""

    def __init__(
        self,
        allocation: AllocationService,
        shopify: ShopifyService,
        processed_orders: ProcessedOrderStore,
        log_sink: InventoryLogSink,
    ):
        self.allocation = allocation
        self.shopify = shopify
        self.processed_orders = processed_orders
        self.log_sink = log_sink
        self._sku_locks = KeyedLock()

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------

    async def process_order_created(self, event: OrderCreated) -> OrderBatchResult:
        """Reserve sub-units for every line item and store the ledger.

        Duplicate deliveries are detected with the ProcessedOrder marker and
        skipped. If an earlier run allocated but failed to store the ledger,
        only the ledger write is repeated.

        Raises:
            ExternalCallFailure: Ledger could not be stored (retry the event)
            PersistenceFailure: Marker could not be written
        """
        order_id = event.order_id
        marker = await self.processed_orders.get(order_id)
        if marker is not None:
            if marker.ledger_synced:
                logger.info("Order already processed, skipping", order_id=order_id)
                return OrderBatchResult(order_id=order_id, skipped=True, reason="Order already processed")

            logger.info("Order allocated but ledger not stored, retrying ledger write", order_id=order_id)
            await self._store_ledger(order_id, marker.assignments)
            await self.processed_orders.mark_ledger_synced(order_id)
            return OrderBatchResult(
                order_id=order_id,
                assignments=marker.assignments,
                skipped=True,
                reason="Ledger stored for already processed order",
            )

        logger.info("Starting order allocation", order_id=order_id, line_items=len(event.line_items))

        results = list(await asyncio.gather(*(self._allocate_line_item(item) for item in event.line_items)))

        assignments: Assignments = {}
        for result in results:
            if result.success:
                assignments = record_assignment(assignments, result.line_item_id, result.sub_units)

        if not await self.processed_orders.mark_processed(order_id, assignments):
            logger.error("Order was processed concurrently by another run", order_id=order_id)

        await self.log_sink.append(
            [
                entry
                for result in results
                if result.success and result.sku
                for entry in sub_unit_entries(
                    result.sku,
                    result.sub_units,
                    InventoryLogReason.ORDER_CREATED,
                    order_id=order_id,
                    reference=event.order_name or None,
                )
            ]
        )

        await self._store_ledger(order_id, assignments)
        await self.processed_orders.mark_ledger_synced(order_id)

        batch = OrderBatchResult(order_id=order_id, line_items=results, assignments=assignments)
        logger.info(
            "Order allocation completed",
            order_id=order_id,
            processed_items=len(results),
            successful_items=len(batch.succeeded),
            failed_items=len(batch.failed),
        )
        return batch

    async def _allocate_line_item(self, item: LineItemInput, quantity: int | None = None) -> LineItemResult:
        quantity = item.quantity if quantity is None else quantity
        if not item.sku:
            logger.info("Skipping line item without SKU", line_item_id=item.id)
            return LineItemResult.skip(item.id, None, "Line item has no SKU", ErrorKind.INVALID_INPUT)
        if quantity <= 0:
            return LineItemResult.skip(item.id, item.sku, "Line item has no quantity", ErrorKind.INVALID_INPUT)

        sku = item.sku
        async with self._sku_locks.hold(sku):
            try:
                if await self.allocation.store.availability(sku) is None:
                    raise SkuNotFound(sku)
                external_quantity = await self._external_quantity(sku)
                outcome = await self.allocation.reserve(sku, quantity, external_quantity)
            except ServiceError as e:
                logger.error("Line item allocation failed", line_item_id=item.id, sku=sku, error=str(e))
                return LineItemResult.failure(item.id, sku, e)

        return LineItemResult(
            line_item_id=item.id,
            sku=sku,
            success=True,
            quantity=quantity,
            sub_units=outcome.reserved,
            added_new=len(outcome.created) + len(outcome.topped_up),
        )

    # ------------------------------------------------------------------
    # Releases: cancellation, return, refund
    # ------------------------------------------------------------------

    async def process_order_cancelled(self, event: OrderCancelled | OrderReturned) -> OrderBatchResult:
        """Release the ledger tail of every cancelled or returned line item.

        Raises:
            OrderNotFound: Shopify does not know the order
            ExternalCallFailure: Order lookup or ledger write failed
        """
        if isinstance(event, OrderReturned):
            reason = InventoryLogReason.ORDER_RETURNED
        else:
            reason = InventoryLogReason.ORDER_CANCELLED
        requests = [_ReleaseRequest(item.id, item.sku, item.quantity) for item in event.line_items]
        return await self._release_flow(
            event.order_id,
            requests,
            reason,
            reference=f"{reason.value} ID: {event.order_id}",
        )

    async def process_refund(self, event: RefundCreated) -> OrderBatchResult:
        """Release the ledger tail of every refunded line item.

        Raises:
            OrderNotFound: Shopify does not know the order
            ExternalCallFailure: Order lookup or ledger write failed
        """
        requests = [_ReleaseRequest(item.line_item_id, None, item.quantity) for item in event.refund_line_items]
        return await self._release_flow(
            event.order_id,
            requests,
            InventoryLogReason.REFUND,
            reference=f"Refund ID: {event.refund_id}",
        )

    async def _release_flow(
        self,
        order_id: int,
        requests: Sequence[_ReleaseRequest],
        reason: InventoryLogReason,
        reference: str,
    ) -> OrderBatchResult:
        logger.info("Starting sub-unit release", order_id=order_id, reason=reason.value, line_items=len(requests))

        order = await self._get_order(order_id)
        if order.assignments is None:
            logger.info("No assigned sub-units found, skipping", order_id=order_id)
            return OrderBatchResult(order_id=order_id, skipped=True, reason="No assigned sub-units found")

        results, assignments, entries = await self._release_requests(
            order, order.assignments, requests, reason, reference
        )

        await self.log_sink.append(entries)
        if any(result.success for result in results):
            await self._store_ledger(order_id, assignments)

        batch = OrderBatchResult(order_id=order_id, line_items=results, assignments=assignments)
        logger.info(
            "Sub-unit release completed",
            order_id=order_id,
            reason=reason.value,
            processed_items=len(results),
            successful_items=len(batch.succeeded),
            failed_items=len(batch.failed),
        )
        return batch

    async def _release_requests(
        self,
        order: ShopifyOrder,
        assignments: Assignments,
        requests: Sequence[_ReleaseRequest],
        reason: InventoryLogReason,
        reference: str,
    ) -> tuple[list[LineItemResult], Assignments, list[InventoryLogEntry]]:
        """Plan and run releases; return results, the resulting ledger and log rows.

        The returned ledger only drops names whose release succeeded, so a
        failed line item keeps its assignment for the next attempt.
        """
        planned: list[tuple[_ReleaseRequest, str, list[str]]] = []
        skipped: list[LineItemResult] = []
        working = assignments
        for request in requests:
            line_item = order.line_item(request.line_item_id)
            sku = request.sku or (line_item.sku if line_item else None)
            if not sku:
                logger.info("Skipping line item without SKU", line_item_id=request.line_item_id)
                skipped.append(
                    LineItemResult.skip(request.line_item_id, None, "Line item has no SKU", ErrorKind.INVALID_INPUT)
                )
                continue

            plan = consume_for_release(working, request.line_item_id, request.quantity)
            if plan is None:
                logger.info("No sub-units assigned to line item, skipping", line_item_id=request.line_item_id, sku=sku)
                skipped.append(
                    LineItemResult.skip(
                        request.line_item_id, sku, "No sub-units assigned to line item", ErrorKind.NOT_FOUND
                    )
                )
                continue

            working = plan.assignments
            planned.append((request, sku, plan.to_release))

        released = list(
            await asyncio.gather(
                *(self._release_line_item(request.line_item_id, sku, names) for request, sku, names in planned)
            )
        )

        final = assignments
        entries: list[InventoryLogEntry] = []
        for (request, sku, _names), result in zip(planned, released, strict=True):
            if not result.success:
                continue
            plan = consume_for_release(final, request.line_item_id, request.quantity)
            if plan is not None:
                final = plan.assignments
            entries.extend(sub_unit_entries(sku, result.sub_units, reason, order_id=order.id, reference=reference))

        return [*released, *skipped], final, entries

    async def _release_line_item(self, line_item_id: int, sku: str, names: list[str]) -> LineItemResult:
        async with self._sku_locks.hold(sku):
            try:
                external_quantity = await self._external_quantity(sku)
                outcome = await self.allocation.release(sku, names, external_quantity)
            except ServiceError as e:
                logger.error("Line item release failed", line_item_id=line_item_id, sku=sku, error=str(e))
                return LineItemResult.failure(line_item_id, sku, e)

        if outcome.removed_excess:
            await self.log_sink.append(
                sub_unit_entries(sku, outcome.removed_excess, InventoryLogReason.INVENTORY_REDUCE)
            )

        return LineItemResult(
            line_item_id=line_item_id,
            sku=sku,
            success=True,
            quantity=len(names),
            sub_units=names,
            removed_excess=len(outcome.removed_excess),
        )

    # ------------------------------------------------------------------
    # Order edits
    # ------------------------------------------------------------------

    async def process_order_edit(self, event: OrderEdited) -> OrderBatchResult:
        """Apply an order edit: reserve for additions, release for removals.

        Raises:
            OrderNotFound: Shopify does not know the order
            ExternalCallFailure: Order lookup or ledger write failed
        """
        order_id = event.order_id
        reference = f"Order Edit ID: {event.order_edit_id}"
        logger.info(
            "Starting order edit",
            order_id=order_id,
            order_edit_id=event.order_edit_id,
            additions=len(event.additions),
            removals=len(event.removals),
        )

        order = await self._get_order(order_id)
        assignments: Assignments = order.assignments or {}
        results: list[LineItemResult] = []
        entries: list[InventoryLogEntry] = []

        additions = []
        for addition in event.additions:
            line_item = order.line_item(addition.line_item_id)
            if line_item is None:
                logger.warning("Edited line item not found in order", line_item_id=addition.line_item_id)
                results.append(
                    LineItemResult.skip(
                        addition.line_item_id, None, "Line item not found in order", ErrorKind.NOT_FOUND
                    )
                )
                continue
            additions.append(
                self._allocate_line_item(
                    LineItemInput(id=line_item.id, sku=line_item.sku, quantity=line_item.quantity),
                    quantity=addition.delta,
                )
            )

        for result in await asyncio.gather(*additions):
            results.append(result)
            if result.success and result.sku:
                assignments = record_assignment(assignments, result.line_item_id, result.sub_units)
                entries.extend(
                    sub_unit_entries(
                        result.sku,
                        result.sub_units,
                        InventoryLogReason.ORDER_EDIT_ADDITION,
                        order_id=order_id,
                        reference=reference,
                    )
                )

        removals = [_ReleaseRequest(removal.line_item_id, None, removal.delta) for removal in event.removals]
        removal_results, assignments, removal_entries = await self._release_requests(
            order, assignments, removals, InventoryLogReason.ORDER_EDIT_REMOVAL, reference
        )
        results.extend(removal_results)
        entries.extend(removal_entries)

        await self.log_sink.append(entries)
        if assignments and any(result.success for result in results):
            await self._store_ledger(order_id, assignments)

        batch = OrderBatchResult(order_id=order_id, line_items=results, assignments=assignments)
        logger.info(
            "Order edit completed",
            order_id=order_id,
            successful_items=len(batch.succeeded),
            failed_items=len(batch.failed),
        )
        return batch

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_order(self, order_id: int) -> ShopifyOrder:
        order = await self.shopify.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def _external_quantity(self, sku: str) -> int | None:
        """Shopify's quantity for ``sku``; None when the lookup fails.

        Without it the pool is not topped up or trimmed; the next inventory
        level webhook reconciles it.
        """
        try:
            return await self.shopify.get_inventory_quantity(sku)
        except ExternalCallFailure as e:
            logger.warning("Could not fetch Shopify quantity, skipping reconciliation", sku=sku, error=str(e))
            return None

    async def _store_ledger(self, order_id: int, assignments: Assignments) -> None:
        await self.shopify.write_assignments(order_id, assignments)
