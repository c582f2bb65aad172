import asyncio

import pytest

from subsku.models.sku_pool import SkuPool
from subsku.services.exceptions import InsufficientAvailable, PersistenceFailure
from subsku.services.inventory.exceptions import SkuNotFound, StalePoolError
from subsku.services.inventory.pool_mutations import append_available, remove_tail_available
from subsku.services.inventory.pool_store import SubSkuPoolStore
from tests.fakes import assert_counts_consistent, available_pool


async def test_get_unknown_sku_returns_none(store: SubSkuPoolStore):
    assert await store.get("NOPE") is None
    assert await store.availability("NOPE") is None


async def test_create_then_get(store: SubSkuPoolStore):
    assert await store.create("ABC", available_pool("ABC", 3))

    sub_units = await store.get("ABC")

    assert sub_units is not None
    assert [sub_unit.name for sub_unit in sub_units] == ["ABC-0001", "ABC-0002", "ABC-0003"]


async def test_create_existing_pool_returns_false(store: SubSkuPoolStore):
    assert await store.create("ABC", available_pool("ABC", 1))
    assert not await store.create("ABC", available_pool("ABC", 5))

    sub_units = await store.get("ABC")
    assert sub_units is not None
    assert len(sub_units) == 1


async def test_update_unknown_sku_raises(store: SubSkuPoolStore):
    with pytest.raises(SkuNotFound):
        await store.update("NOPE", lambda sub_units: None)


async def test_update_bumps_version(store: SubSkuPoolStore, session_maker):
    await store.create("ABC", [])

    result = await store.update("ABC", lambda sub_units: append_available("ABC", sub_units, 2))

    assert result.changed
    assert result.result == ["ABC-0001", "ABC-0002"]
    assert result.availability.available_count == 2
    async with session_maker() as session:
        pool = await session.get(SkuPool, "ABC")
        assert pool.version == 1


async def test_noop_update_does_not_write(store: SubSkuPoolStore, session_maker):
    await store.create("ABC", available_pool("ABC", 2))

    result = await store.update("ABC", lambda sub_units: len(sub_units))

    assert not result.changed
    assert result.result == 2
    async with session_maker() as session:
        pool = await session.get(SkuPool, "ABC")
        assert pool.version == 0


async def test_failed_mutation_leaves_pool_unchanged(store: SubSkuPoolStore):
    await store.create("ABC", available_pool("ABC", 1))

    with pytest.raises(InsufficientAvailable):
        await store.update("ABC", lambda sub_units: remove_tail_available("ABC", sub_units, 2))

    sub_units = await store.get("ABC")
    assert sub_units is not None
    assert len(sub_units) == 1


async def test_stale_write_is_retried(store: SubSkuPoolStore, monkeypatch: pytest.MonkeyPatch):
    await store.create("ABC", available_pool("ABC", 1))
    original_try_update = store._try_update
    attempts: list[str] = []

    async def lose_first_race(sku, mutate):
        attempts.append(sku)
        if len(attempts) == 1:
            raise StalePoolError(sku, 0)
        return await original_try_update(sku, mutate)

    monkeypatch.setattr(store, "_try_update", lose_first_race)

    result = await store.update("ABC", lambda sub_units: append_available("ABC", sub_units, 1))

    assert len(attempts) == 2
    assert result.result == ["ABC-0002"]


async def test_persistent_conflict_gives_up(session_maker, monkeypatch: pytest.MonkeyPatch):
    store = SubSkuPoolStore(session_maker, max_attempts=3)
    await store.create("ABC", [])
    attempts: list[str] = []

    async def always_stale(sku, mutate):
        attempts.append(sku)
        raise StalePoolError(sku, 0)

    monkeypatch.setattr(store, "_try_update", always_stale)

    with pytest.raises(PersistenceFailure):
        await store.update("ABC", lambda sub_units: None)
    assert len(attempts) == 3


async def test_concurrent_updates_all_land(store: SubSkuPoolStore):
    await store.create("ABC", [])

    results = await asyncio.gather(
        *(store.update("ABC", lambda sub_units: append_available("ABC", sub_units, 1)) for _ in range(4))
    )

    created = [name for result in results for name in result.result]
    assert sorted(created) == ["ABC-0001", "ABC-0002", "ABC-0003", "ABC-0004"]
    sub_units = await store.get("ABC")
    assert sub_units is not None
    assert len(sub_units) == 4
    assert_counts_consistent(sub_units)


async def test_last_issued_number_is_persisted(store: SubSkuPoolStore, session_maker):
    await store.create("ABC", available_pool("ABC", 3))

    await store.update("ABC", lambda sub_units: remove_tail_available("ABC", sub_units, 2))
    result = await store.update("ABC", lambda sub_units: append_available("ABC", sub_units, 1))

    assert result.result == ["ABC-0004"]
    async with session_maker() as session:
        pool = await session.get(SkuPool, "ABC")
        assert pool.last_number == 4
