import pytest

from subsku.services.exceptions import ErrorKind, ExternalCallFailure
from subsku.services.external.shopify_models import InventoryItemInfo
from subsku.services.inventory.reconciliation_service import ReconcileAction
from subsku.services.results import OperationResult, OrderBatchResult
from subsku.webhooks.dispatcher import EventDispatcher
from subsku.webhooks.events import parse_webhook
from tests.fakes import FakeShopify, RecordingLogSink, available_pool

ORDER = {"id": 1001, "line_items": [{"id": 11, "sku": "ABC", "quantity": 1}]}


async def handle(dispatcher: EventDispatcher, topic: str, payload: dict) -> OperationResult:
    return await dispatcher.dispatch(parse_webhook(topic, payload))


@pytest.fixture
def dispatcher(session_maker, shopify: FakeShopify, log_sink: RecordingLogSink) -> EventDispatcher:
    return EventDispatcher(session_maker, shopify, log_sink)  # type: ignore[arg-type]


async def test_order_created_is_routed(dispatcher: EventDispatcher, shopify: FakeShopify):
    await dispatcher.store.create("ABC", available_pool("ABC", 2))
    shopify.quantities["ABC"] = 1

    result = await handle(dispatcher, "orders/create", ORDER)

    assert result.success
    assert isinstance(result.data, OrderBatchResult)
    assert result.data.assignments == {"11": ["ABC-0001"]}


async def test_inventory_level_update_reconciles(dispatcher: EventDispatcher, shopify: FakeShopify):
    shopify.inventory_items[42] = InventoryItemInfo(inventory_item_id=42, sku="ABC", product_title="Widget")
    await dispatcher.store.create("ABC", available_pool("ABC", 5))

    result = await handle(dispatcher, "inventory_levels/update", {"inventory_item_id": 42, "available": 3})

    assert result.success
    assert result.data.action == ReconcileAction.REMOVED
    assert result.data.sub_units == ["ABC-0005", "ABC-0004"]


async def test_inventory_item_without_sku_fails(dispatcher: EventDispatcher, shopify: FakeShopify):
    shopify.inventory_items[42] = InventoryItemInfo(inventory_item_id=42, sku=None)

    result = await handle(dispatcher, "inventory_levels/update", {"inventory_item_id": 42, "available": 3})

    assert not result.success
    assert result.error_kind == ErrorKind.INVALID_INPUT


async def test_unknown_order_is_a_business_failure(dispatcher: EventDispatcher):
    result = await handle(dispatcher, "orders/cancelled", {"id": 404, "line_items": []})

    assert not result.success
    assert result.error_kind == ErrorKind.NOT_FOUND


async def test_transient_failures_propagate(dispatcher: EventDispatcher, shopify: FakeShopify):
    await dispatcher.store.create("ABC", available_pool("ABC", 1))
    shopify.fail_writes = 1

    with pytest.raises(ExternalCallFailure):
        await handle(dispatcher, "orders/create", ORDER)


async def test_product_create_is_routed(dispatcher: EventDispatcher):
    result = await handle(dispatcher, 
        "products/create",
        {"id": 9, "title": "Widget", "variants": [{"id": 1, "sku": "NEW", "inventory_quantity": 2}]},
    )

    assert result.success
    assert len(await dispatcher.store.get("NEW") or []) == 2
