"""Route typed webhook events to their flows."""

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subsku.services.exceptions import ServiceError
from subsku.services.external.shopify import ShopifyService
from subsku.services.inventory.allocation_service import AllocationService
from subsku.services.inventory.inventory_level_service import InventoryLevelService
from subsku.services.inventory.pool_store import SubSkuPoolStore
from subsku.services.inventory.reconciliation_service import ReconciliationService
from subsku.services.inventory_log import DatabaseInventoryLog, InventoryLogSink
from subsku.services.orders.order_inventory_service import OrderInventoryService
from subsku.services.orders.processed_orders import ProcessedOrderStore
from subsku.services.products.product_service import ProductService
from subsku.services.results import OperationResult
from subsku.webhooks.events import (
    InventoryLevelUpdated,
    OrderCancelled,
    OrderCreated,
    OrderEdited,
    OrderReturned,
    ProductCreated,
    ProductUpdated,
    RefundCreated,
    WebhookEvent,
)

logger = structlog.get_logger(__name__)


class EventDispatcher:
    """Build the flow services for one store and dispatch events to them.

    Non-retryable service errors become a failed ``OperationResult``.
    Retryable ones (Shopify or database trouble) propagate so the queue
    can redeliver the event.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        shopify: ShopifyService,
        log_sink: InventoryLogSink | None = None,
    ):
        self.log_sink = log_sink or DatabaseInventoryLog(session_maker)
        self.store = SubSkuPoolStore(session_maker)
        allocation = AllocationService(self.store)
        reconciliation = ReconciliationService(self.store, self.log_sink)

        self.orders = OrderInventoryService(allocation, shopify, ProcessedOrderStore(session_maker), self.log_sink)
        self.inventory_levels = InventoryLevelService(reconciliation, shopify)
        self.products = ProductService(session_maker, reconciliation)

    async def dispatch(self, event: WebhookEvent) -> OperationResult:
        """Run the flow for one parsed event and wrap its outcome."""
        try:
            data = await self._run(event)
        except ServiceError as e:
            if e.retryable:
                logger.warning("Event failed with a transient error", kind=event.kind, error=str(e))
                raise
            logger.error("Event failed", kind=event.kind, error=str(e), error_kind=e.kind.value)
            return OperationResult.fail(e)
        return OperationResult.ok(data)

    async def _run(self, event: WebhookEvent) -> Any:
        match event:
            case OrderCreated():
                return await self.orders.process_order_created(event)
            case OrderCancelled() | OrderReturned():
                return await self.orders.process_order_cancelled(event)
            case RefundCreated():
                return await self.orders.process_refund(event)
            case OrderEdited():
                return await self.orders.process_order_edit(event)
            case InventoryLevelUpdated():
                return await self.inventory_levels.process_inventory_level_update(event)
            case ProductCreated():
                return await self.products.process_product_created(event)
            case ProductUpdated():
                return await self.products.process_product_updated(event)
        raise TypeError(f"Unhandled event type: {type(event).__name__}")


def event_lock_key(event: WebhookEvent) -> str | None:
    """Redis lock key serializing events that touch the same order or product.

    All order topics share one key per order since they rewrite the same
    ledger. Inventory level updates need no lock.
    """
    match event:
        case OrderCreated() | OrderCancelled() | OrderReturned() | RefundCreated() | OrderEdited():
            return f"webhook:order:{event.order_id}"
        case ProductCreated() | ProductUpdated():
            return f"webhook:product:{event.product_id}"
    return None
