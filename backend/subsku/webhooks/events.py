"""Typed webhook events.

Raw Shopify webhook JSON is normalized into one of these models before it
reaches an engine flow. Each model carries a ``kind`` tag so a stored or
queued event can be validated back into the right type.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from subsku.models.enums import WebhookTopic
from subsku.services.exceptions import ValidationError


class LineItemInput(BaseModel):
    id: int
    sku: str | None = None
    quantity: int = Field(default=0, ge=0)


class OrderCreated(BaseModel):
    kind: Literal["order_created"] = "order_created"
    order_id: int
    order_name: str = ""
    line_items: list[LineItemInput] = Field(default_factory=list)


class OrderCancelled(BaseModel):
    kind: Literal["order_cancelled"] = "order_cancelled"
    order_id: int
    order_name: str = ""
    line_items: list[LineItemInput] = Field(default_factory=list)


class OrderReturned(BaseModel):
    kind: Literal["order_returned"] = "order_returned"
    order_id: int
    order_name: str = ""
    line_items: list[LineItemInput] = Field(default_factory=list)


class RefundLineItemInput(BaseModel):
    line_item_id: int
    quantity: int = Field(default=0, ge=0)


class RefundCreated(BaseModel):
    kind: Literal["refund_created"] = "refund_created"
    refund_id: int
    order_id: int
    refund_line_items: list[RefundLineItemInput] = Field(default_factory=list)


class LineItemDelta(BaseModel):
    line_item_id: int
    delta: int = Field(ge=0)


class OrderEdited(BaseModel):
    kind: Literal["order_edited"] = "order_edited"
    order_edit_id: int
    order_id: int
    additions: list[LineItemDelta] = Field(default_factory=list)
    removals: list[LineItemDelta] = Field(default_factory=list)


class InventoryLevelUpdated(BaseModel):
    kind: Literal["inventory_level_updated"] = "inventory_level_updated"
    inventory_item_id: int
    available_quantity: int


class ProductVariantInput(BaseModel):
    id: int | None = None
    sku: str | None = None
    title: str = ""
    inventory_quantity: int = 0
    weight: float | None = None
    weight_unit: str | None = None


class ProductCreated(BaseModel):
    kind: Literal["product_created"] = "product_created"
    product_id: int
    title: str = ""
    vendor: str | None = None
    variants: list[ProductVariantInput] = Field(default_factory=list)


class ProductUpdated(BaseModel):
    kind: Literal["product_updated"] = "product_updated"
    product_id: int
    title: str = ""
    vendor: str | None = None
    variants: list[ProductVariantInput] = Field(default_factory=list)


WebhookEvent = Annotated[
    OrderCreated
    | OrderCancelled
    | OrderReturned
    | RefundCreated
    | OrderEdited
    | InventoryLevelUpdated
    | ProductCreated
    | ProductUpdated,
    Field(discriminator="kind"),
]


def _order_fields(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "order_id": payload.get("id"),
        "order_name": payload.get("name") or "",
        "line_items": [
            {"id": item.get("id"), "sku": item.get("sku") or None, "quantity": item.get("quantity", 0)}
            for item in payload.get("line_items") or []
        ],
    }


def _product_fields(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "product_id": payload.get("id"),
        "title": payload.get("title") or "",
        "vendor": payload.get("vendor"),
        "variants": [
            {
                "id": variant.get("id"),
                "sku": variant.get("sku") or None,
                "title": variant.get("title") or "",
                "inventory_quantity": variant.get("inventory_quantity") or 0,
                "weight": variant.get("weight"),
                "weight_unit": variant.get("weight_unit"),
            }
            for variant in payload.get("variants") or []
        ],
    }


def _edit_deltas(entries: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [{"line_item_id": entry.get("id"), "delta": entry.get("delta", 0)} for entry in entries or []]


def parse_webhook(topic: WebhookTopic | str, payload: dict[str, Any]) -> WebhookEvent:
    """Normalize a raw Shopify webhook payload into a typed event.

    Raises:
        ValidationError: Unknown topic or payload missing required fields
    """
    try:
        topic = WebhookTopic(topic)
    except ValueError as e:
        raise ValidationError(f"Unsupported webhook topic: {topic}") from e

    try:
        match topic:
            case WebhookTopic.ORDERS_CREATE:
                return OrderCreated.model_validate(_order_fields(payload))
            case WebhookTopic.ORDERS_CANCELLED:
                return OrderCancelled.model_validate(_order_fields(payload))
            case WebhookTopic.ORDERS_RETURNED:
                return OrderReturned.model_validate(_order_fields(payload))
            case WebhookTopic.REFUNDS_CREATE:
                return RefundCreated.model_validate(
                    {
                        "refund_id": payload.get("id"),
                        "order_id": payload.get("order_id"),
                        "refund_line_items": [
                            {"line_item_id": item.get("line_item_id"), "quantity": item.get("quantity", 0)}
                            for item in payload.get("refund_line_items") or []
                        ],
                    }
                )
            case WebhookTopic.ORDERS_EDITED:
                order_edit = payload.get("order_edit") or {}
                line_items = order_edit.get("line_items") or {}
                return OrderEdited.model_validate(
                    {
                        "order_edit_id": order_edit.get("id"),
                        "order_id": order_edit.get("order_id"),
                        "additions": _edit_deltas(line_items.get("additions")),
                        "removals": _edit_deltas(line_items.get("removals")),
                    }
                )
            case WebhookTopic.INVENTORY_LEVELS_UPDATE:
                return InventoryLevelUpdated.model_validate(
                    {
                        "inventory_item_id": payload.get("inventory_item_id"),
                        "available_quantity": payload.get("available"),
                    }
                )
            case WebhookTopic.PRODUCTS_CREATE:
                return ProductCreated.model_validate(_product_fields(payload))
            case WebhookTopic.PRODUCTS_UPDATE:
                return ProductUpdated.model_validate(_product_fields(payload))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {topic.value} payload: {e.error_count()} validation error(s)") from e

    raise ValidationError(f"Unsupported webhook topic: {topic}")  # pragma: no cover
