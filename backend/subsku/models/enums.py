"""Enum definitions for database models and webhook routing."""

from enum import StrEnum


class SubUnitStatus(StrEnum):
    """Availability state of a single sub-unit."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class WebhookTopic(StrEnum):
    """Shopify webhook topics handled by the worker."""

    ORDERS_CREATE = "orders/create"
    ORDERS_CANCELLED = "orders/cancelled"
    # App-level topic for approved returns; carries an order-shaped payload
    ORDERS_RETURNED = "orders/returned"
    ORDERS_EDITED = "orders/edited"
    REFUNDS_CREATE = "refunds/create"
    INVENTORY_LEVELS_UPDATE = "inventory_levels/update"
    PRODUCTS_CREATE = "products/create"
    PRODUCTS_UPDATE = "products/update"


class InventoryLogReason(StrEnum):
    """Human-readable reason attached to every inventory log row."""

    ORDER_CREATED = "Order Created"
    ORDER_CANCELLED = "Order Cancelled"
    ORDER_RETURNED = "Order Returned"
    REFUND = "Refund"
    ORDER_EDIT_ADDITION = "Order Edit - Addition"
    ORDER_EDIT_REMOVAL = "Order Edit - Removal"
    INVENTORY_UPDATE = "Inventory Update"
    INVENTORY_REDUCE = "Inventory Reduce"
    PRODUCT_CREATED = "Product Created"
