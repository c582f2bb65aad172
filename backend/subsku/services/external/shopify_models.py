"""Typed views of the Shopify Admin GraphQL responses used by the engine."""

from pydantic import BaseModel, Field


class InventoryItemInfo(BaseModel):
    """Inventory item resolved to its variant SKU."""

    inventory_item_id: int
    sku: str | None = None
    product_title: str | None = None


class ShopifyLineItem(BaseModel):
    """Order line item as seen by the ledger flows."""

    id: int
    sku: str | None = None
    quantity: int = 0
    title: str = ""
    variant_title: str | None = None


class ShopifyOrder(BaseModel):
    """Order with its line items and assignment ledger."""

    id: int
    name: str = ""
    line_items: list[ShopifyLineItem] = Field(default_factory=list)
    # None when the order has no ledger metafield yet
    assignments: dict[str, list[str]] | None = None

    def line_item(self, line_item_id: int) -> ShopifyLineItem | None:
        for item in self.line_items:
            if item.id == line_item_id:
                return item
        return None
