"""Shared fixtures: SQLite-backed stores, a fake Shopify client and a recording log sink."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import subsku.models  # noqa: F401
from subsku.services.inventory.allocation_service import AllocationService
from subsku.services.inventory.pool_store import SubSkuPoolStore
from subsku.services.inventory.reconciliation_service import ReconciliationService
from subsku.services.orders.processed_orders import ProcessedOrderStore
from tests.fakes import FakeShopify, RecordingLogSink


@pytest.fixture
async def session_maker(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'subsku.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_maker: async_sessionmaker[AsyncSession]) -> SubSkuPoolStore:
    return SubSkuPoolStore(session_maker, max_attempts=5)


@pytest.fixture
def allocation(store: SubSkuPoolStore) -> AllocationService:
    return AllocationService(store, number_width=4)


@pytest.fixture
def log_sink() -> RecordingLogSink:
    return RecordingLogSink()


@pytest.fixture
def reconciliation(store: SubSkuPoolStore, log_sink: RecordingLogSink) -> ReconciliationService:
    return ReconciliationService(store, log_sink, number_width=4)


@pytest.fixture
def processed_orders(session_maker: async_sessionmaker[AsyncSession]) -> ProcessedOrderStore:
    return ProcessedOrderStore(session_maker)


@pytest.fixture
def shopify() -> FakeShopify:
    return FakeShopify()
