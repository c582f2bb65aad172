"""Database models."""

from sqlmodel import SQLModel

from subsku.models.enums import InventoryLogReason, SubUnitStatus, WebhookTopic
from subsku.models.inventory_log import InventoryLogEntry
from subsku.models.processed_order import ProcessedOrder
from subsku.models.product import ProductSnapshot
from subsku.models.sku_pool import SkuPool, SubUnit

__all__ = [
    "SQLModel",
    "SkuPool",
    "SubUnit",
    "ProductSnapshot",
    "ProcessedOrder",
    "InventoryLogEntry",
    "SubUnitStatus",
    "WebhookTopic",
    "InventoryLogReason",
]
