import pytest

from subsku.models.enums import InventoryLogReason
from subsku.services.exceptions import ErrorKind, ExternalCallFailure
from subsku.services.inventory.allocation_service import AllocationService
from subsku.services.inventory.pool_store import SubSkuPoolStore
from subsku.services.orders.exceptions import OrderNotFound
from subsku.services.orders.order_inventory_service import OrderInventoryService
from subsku.services.orders.processed_orders import ProcessedOrderStore
from subsku.webhooks.events import (
    LineItemDelta,
    LineItemInput,
    OrderCancelled,
    OrderCreated,
    OrderEdited,
    OrderReturned,
    RefundCreated,
    RefundLineItemInput,
)
from tests.fakes import FakeShopify, RecordingLogSink, assert_counts_consistent, available_pool


@pytest.fixture
def orders(
    allocation: AllocationService,
    shopify: FakeShopify,
    processed_orders: ProcessedOrderStore,
    log_sink: RecordingLogSink,
) -> OrderInventoryService:
    return OrderInventoryService(allocation, shopify, processed_orders, log_sink)  # type: ignore[arg-type]


def created(order_id: int, *items: tuple[int, str | None, int]) -> OrderCreated:
    return OrderCreated(
        order_id=order_id,
        order_name=f"#{order_id}",
        line_items=[LineItemInput(id=item_id, sku=sku, quantity=quantity) for item_id, sku, quantity in items],
    )


async def _available(store: SubSkuPoolStore, sku: str) -> list[str]:
    return [sub_unit.name for sub_unit in await store.get(sku) or [] if sub_unit.is_available]


async def test_order_created_reserves_and_stores_ledger(
    orders: OrderInventoryService,
    store: SubSkuPoolStore,
    shopify: FakeShopify,
    processed_orders: ProcessedOrderStore,
    log_sink: RecordingLogSink,
):
    await store.create("ABC", available_pool("ABC", 5))
    shopify.quantities["ABC"] = 3
    shopify.add_order(1001, [(11, "ABC", 2)])

    result = await orders.process_order_created(created(1001, (11, "ABC", 2)))

    assert not result.skipped
    assert result.assignments == {"11": ["ABC-0001", "ABC-0002"]}
    assert shopify.written == [(1001, {"11": ["ABC-0001", "ABC-0002"]})]
    assert await _available(store, "ABC") == ["ABC-0003", "ABC-0004", "ABC-0005"]
    assert log_sink.names(InventoryLogReason.ORDER_CREATED) == ["ABC-0001", "ABC-0002"]
    assert {entry.order_id for entry in log_sink.entries} == {1001}

    marker = await processed_orders.get(1001)
    assert marker is not None
    assert marker.ledger_synced


async def test_order_created_twice_is_a_no_op(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify
):
    await store.create("ABC", available_pool("ABC", 5))
    shopify.quantities["ABC"] = 5
    event = created(1001, (11, "ABC", 2))

    await orders.process_order_created(event)
    before = await store.get("ABC")
    second = await orders.process_order_created(event)

    assert second.skipped
    assert second.reason == "Order already processed"
    assert await store.get("ABC") == before
    assert len(shopify.written) == 1


async def test_order_created_tops_up_to_shopify_quantity(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify
):
    await store.create("ABC", [])
    shopify.quantities["ABC"] = 2

    result = await orders.process_order_created(created(1001, (11, "ABC", 3)))

    line = result.line_items[0]
    assert line.sub_units == ["ABC-0001", "ABC-0002", "ABC-0003"]
    assert line.added_new == 5
    assert await _available(store, "ABC") == ["ABC-0004", "ABC-0005"]
    assert_counts_consistent(await store.get("ABC"))


async def test_order_created_partial_failures_do_not_abort(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify
):
    await store.create("ABC", available_pool("ABC", 3))
    shopify.quantities["ABC"] = 2

    result = await orders.process_order_created(created(1001, (11, "ABC", 1), (12, None, 1), (13, "NOPE", 1)))

    by_id = {item.line_item_id: item for item in result.line_items}
    assert by_id[11].success
    assert by_id[12].skipped
    assert by_id[12].error_kind == ErrorKind.INVALID_INPUT
    assert not by_id[13].success
    assert by_id[13].error_kind == ErrorKind.NOT_FOUND
    assert [item.line_item_id for item in result.failed] == [13]
    assert result.assignments == {"11": ["ABC-0001"]}


async def test_same_sku_line_items_get_distinct_sub_units(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify
):
    await store.create("ABC", available_pool("ABC", 4))
    shopify.quantities["ABC"] = 1

    result = await orders.process_order_created(created(1001, (11, "ABC", 2), (12, "ABC", 1)))

    names = [name for item in result.line_items for name in item.sub_units]
    assert sorted(names) == ["ABC-0001", "ABC-0002", "ABC-0003"]
    assert_counts_consistent(await store.get("ABC"))


async def test_failed_quantity_lookup_still_reserves(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify
):
    await store.create("ABC", available_pool("ABC", 2))
    shopify.fail_quantity_lookups = True

    result = await orders.process_order_created(created(1001, (11, "ABC", 1)))

    assert result.line_items[0].sub_units == ["ABC-0001"]
    assert result.line_items[0].added_new == 0


async def test_failed_ledger_write_is_retried_without_reallocating(
    orders: OrderInventoryService,
    store: SubSkuPoolStore,
    shopify: FakeShopify,
    processed_orders: ProcessedOrderStore,
):
    await store.create("ABC", available_pool("ABC", 3))
    shopify.quantities["ABC"] = 2
    shopify.fail_writes = 1
    event = created(1001, (11, "ABC", 1))

    with pytest.raises(ExternalCallFailure):
        await orders.process_order_created(event)

    marker = await processed_orders.get(1001)
    assert marker is not None
    assert not marker.ledger_synced

    retry = await orders.process_order_created(event)

    assert retry.skipped
    assert retry.assignments == {"11": ["ABC-0001"]}
    assert shopify.written == [(1001, {"11": ["ABC-0001"]})]
    assert await _available(store, "ABC") == ["ABC-0002", "ABC-0003"]
    marker = await processed_orders.get(1001)
    assert marker is not None
    assert marker.ledger_synced


async def test_cancel_releases_ledger_sub_units(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify, log_sink: RecordingLogSink
):
    await store.create("ABC", available_pool("ABC", 5))
    shopify.quantities["ABC"] = 3
    shopify.add_order(1001, [(11, "ABC", 2)])
    await orders.process_order_created(created(1001, (11, "ABC", 2)))
    shopify.quantities["ABC"] = 5

    result = await orders.process_order_cancelled(
        OrderCancelled(order_id=1001, line_items=[LineItemInput(id=11, sku="ABC", quantity=2)])
    )

    assert [item.sub_units for item in result.succeeded] == [["ABC-0001", "ABC-0002"]]
    assert result.assignments == {"11": []}
    assert shopify.orders[1001].assignments == {"11": []}
    assert len(await _available(store, "ABC")) == 5
    assert log_sink.names(InventoryLogReason.ORDER_CANCELLED) == ["ABC-0001", "ABC-0002"]


async def test_cancel_trims_excess_above_shopify_quantity(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify, log_sink: RecordingLogSink
):
    await store.create("ABC", available_pool("ABC", 4))
    shopify.quantities["ABC"] = 3
    shopify.add_order(1001, [(11, "ABC", 1)])
    await orders.process_order_created(created(1001, (11, "ABC", 1)))

    result = await orders.process_order_cancelled(
        OrderCancelled(order_id=1001, line_items=[LineItemInput(id=11, sku="ABC", quantity=1)])
    )

    assert result.line_items[0].removed_excess == 1
    assert await _available(store, "ABC") == ["ABC-0001", "ABC-0002", "ABC-0003"]
    assert log_sink.names(InventoryLogReason.INVENTORY_REDUCE) == ["ABC-0004"]


async def test_return_logs_return_reason(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify, log_sink: RecordingLogSink
):
    await store.create("ABC", available_pool("ABC", 2))
    shopify.quantities["ABC"] = 1
    shopify.add_order(1001, [(11, "ABC", 1)])
    await orders.process_order_created(created(1001, (11, "ABC", 1)))
    shopify.quantities["ABC"] = 2

    await orders.process_order_cancelled(
        OrderReturned(order_id=1001, line_items=[LineItemInput(id=11, sku="ABC", quantity=1)])
    )

    assert log_sink.names(InventoryLogReason.ORDER_RETURNED) == ["ABC-0001"]


async def test_partial_refund_releases_most_recent(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify, log_sink: RecordingLogSink
):
    await store.create("A", available_pool("A", 3))
    shopify.quantities["A"] = 0
    shopify.add_order(1001, [(11, "A", 3)])
    await orders.process_order_created(created(1001, (11, "A", 3)))
    shopify.quantities["A"] = 2

    result = await orders.process_refund(
        RefundCreated(refund_id=77, order_id=1001, refund_line_items=[RefundLineItemInput(line_item_id=11, quantity=2)])
    )

    assert result.line_items[0].sub_units == ["A-0002", "A-0003"]
    assert shopify.orders[1001].assignments == {"11": ["A-0001"]}
    assert await _available(store, "A") == ["A-0002", "A-0003"]
    assert {entry.reference for entry in log_sink.entries if entry.reason == InventoryLogReason.REFUND} == {
        "Refund ID: 77"
    }


async def test_release_without_ledger_is_skipped(orders: OrderInventoryService, shopify: FakeShopify):
    shopify.add_order(1001, [(11, "ABC", 1)])

    result = await orders.process_order_cancelled(
        OrderCancelled(order_id=1001, line_items=[LineItemInput(id=11, sku="ABC", quantity=1)])
    )

    assert result.skipped
    assert shopify.written == []


async def test_release_for_unknown_order_fails(orders: OrderInventoryService):
    with pytest.raises(OrderNotFound):
        await orders.process_refund(
            RefundCreated(
                refund_id=1, order_id=404, refund_line_items=[RefundLineItemInput(line_item_id=1, quantity=1)]
            )
        )


async def test_line_item_missing_from_ledger_is_skipped(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify
):
    await store.create("ABC", available_pool("ABC", 2))
    shopify.quantities["ABC"] = 1
    shopify.add_order(1001, [(11, "ABC", 1), (12, "ABC", 1)])
    await orders.process_order_created(created(1001, (11, "ABC", 1)))

    result = await orders.process_order_cancelled(
        OrderCancelled(
            order_id=1001,
            line_items=[LineItemInput(id=11, sku="ABC", quantity=1), LineItemInput(id=12, sku="ABC", quantity=1)],
        )
    )

    by_id = {item.line_item_id: item for item in result.line_items}
    assert by_id[11].success
    assert by_id[12].skipped
    assert by_id[12].error_kind == ErrorKind.NOT_FOUND


async def test_order_edit_additions_and_removals(
    orders: OrderInventoryService, store: SubSkuPoolStore, shopify: FakeShopify, log_sink: RecordingLogSink
):
    await store.create("ABC", available_pool("ABC", 5))
    await store.create("XYZ", available_pool("XYZ", 2))
    shopify.quantities.update({"ABC": 3, "XYZ": 1})
    shopify.add_order(1001, [(11, "ABC", 2), (22, "XYZ", 1)])
    await orders.process_order_created(created(1001, (11, "ABC", 2), (22, "XYZ", 1)))
    shopify.quantities.update({"ABC": 2, "XYZ": 2})

    result = await orders.process_order_edit(
        OrderEdited(
            order_edit_id=5,
            order_id=1001,
            additions=[LineItemDelta(line_item_id=11, delta=1)],
            removals=[LineItemDelta(line_item_id=22, delta=1)],
        )
    )

    assert result.assignments == {"11": ["ABC-0001", "ABC-0002", "ABC-0003"], "22": []}
    assert shopify.orders[1001].assignments == result.assignments
    assert log_sink.names(InventoryLogReason.ORDER_EDIT_ADDITION) == ["ABC-0003"]
    assert log_sink.names(InventoryLogReason.ORDER_EDIT_REMOVAL) == ["XYZ-0001"]
    assert await _available(store, "XYZ") == ["XYZ-0001", "XYZ-0002"]
    assert_counts_consistent(await store.get("ABC"))
