"""Inventory level webhook flow."""

import structlog

from subsku.services.exceptions import NotFoundError, ValidationError
from subsku.services.external.shopify import ShopifyService
from subsku.services.inventory.reconciliation_service import ReconcileOutcome, ReconciliationService
from subsku.webhooks.events import InventoryLevelUpdated

logger = structlog.get_logger(__name__)


class InventoryLevelService:
    """Reconcile a pool when Shopify reports a new available quantity."""

    def __init__(self, reconciliation: ReconciliationService, shopify: ShopifyService):
        self.reconciliation = reconciliation
        self.shopify = shopify

    async def process_inventory_level_update(self, event: InventoryLevelUpdated) -> ReconcileOutcome:
        """Resolve the item's SKU and reconcile its pool to the new quantity.

        Raises:
            NotFoundError: Inventory item unknown to Shopify
            ValidationError: Inventory item has no SKU
            ExternalCallFailure: SKU lookup failed
        """
        info = await self.shopify.get_inventory_item_sku(event.inventory_item_id)
        if info is None:
            raise NotFoundError(f"Inventory item not found: {event.inventory_item_id}")
        if not info.sku:
            logger.info("Inventory item has no SKU", inventory_item_id=event.inventory_item_id)
            raise ValidationError(f"Inventory item {event.inventory_item_id} has no SKU")

        logger.info(
            "Inventory level updated",
            sku=info.sku,
            inventory_item_id=event.inventory_item_id,
            available=event.available_quantity,
        )
        return await self.reconciliation.reconcile_to_external(
            info.sku,
            event.available_quantity,
            reference=info.product_title,
        )
