"""Durable per-SKU sub-unit pool store.

Every mutation goes through ``SubSkuPoolStore.update`` which runs the
mutation against a freshly read copy of the pool and writes it back with a
compare-and-set on the ``version`` column. A lost race raises
StalePoolError internally and the whole read-mutate-write is retried.

The store opens one short session per call, so it is safe to share between
line items processed concurrently with asyncio.gather.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from subsku.config import settings
from subsku.models.sku_pool import SkuPool, SubUnit
from subsku.models.types import utc_now
from subsku.services.exceptions import PersistenceFailure
from subsku.services.inventory.availability import (
    PoolAvailability,
    SubUnitList,
    describe_pool,
    max_suffix,
    parse_sub_units,
)
from subsku.services.inventory.exceptions import SkuNotFound, StalePoolError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Mutates the list in place and returns an operation-specific result.
# The list is a SubUnitList carrying the pool's last issued number.
PoolMutation = Callable[[list[SubUnit]], T]


@dataclass
class PoolUpdate(Generic[T]):
    """Outcome of one atomic pool update."""

    result: T
    availability: PoolAvailability
    changed: bool


def _dump(sub_units: list[SubUnit]) -> list[dict[str, str]]:
    return [sub_unit.model_dump(mode="json") for sub_unit in sub_units]


class SubSkuPoolStore:
    """Read and atomically update SKU pools."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        max_attempts: int | None = None,
    ):
        self._session_maker = session_maker
        self._max_attempts = max_attempts or settings.pool_update_max_attempts

    async def get(self, sku: str) -> list[SubUnit] | None:
        """Return the pool's sub-units in storage order, or None if unknown.

        A pool whose stored list is malformed reads as an empty list.
        """
        async with self._session_maker() as session:
            pool = await session.get(SkuPool, sku)
            if pool is None:
                return None
            return parse_sub_units(pool.sub_units) or []

    async def availability(self, sku: str) -> PoolAvailability | None:
        """Availability of a known SKU, None when no pool exists."""
        sub_units = await self.get(sku)
        if sub_units is None:
            return None
        return describe_pool(sub_units)

    async def create(self, sku: str, sub_units: list[SubUnit]) -> bool:
        """Insert a new pool.

        Returns False (and writes nothing) when a pool for the SKU already
        exists, so concurrent creators can fall back to ``update``.
        """
        async with self._session_maker() as session:
            session.add(SkuPool(sku=sku, sub_units=_dump(sub_units), last_number=max_suffix(sub_units)))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("SKU pool already exists", sku=sku)
                return False
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceFailure(f"Failed to create SKU pool {sku}: {e}") from e

        logger.info("Created SKU pool", sku=sku, sub_unit_count=len(sub_units))
        return True

    async def update(self, sku: str, mutate: PoolMutation[T]) -> PoolUpdate[T]:
        """Apply ``mutate`` to the pool and persist it atomically.

        ``mutate`` may run more than once (on a lost compare-and-set) and must
        only depend on the list it is given. Exceptions raised by ``mutate``
        propagate and leave the pool unchanged.

        Raises:
            SkuNotFound: No pool exists for the SKU
            PersistenceFailure: Write failed or kept conflicting
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(StalePoolError),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=0.05, max=1.0),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying SKU pool update after conflict",
                        sku=sku,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self._try_update(sku, mutate)

        raise AssertionError("unreachable")  # pragma: no cover

    async def _try_update(self, sku: str, mutate: PoolMutation[T]) -> PoolUpdate[T]:
        async with self._session_maker() as session:
            pool = await session.get(SkuPool, sku)
            if pool is None:
                raise SkuNotFound(sku)

            read_version = pool.version
            original = parse_sub_units(pool.sub_units) or []
            working = SubUnitList((sub_unit.model_copy() for sub_unit in original), last_number=pool.last_number)

            result = mutate(working)

            new_data = _dump(working)
            if new_data == _dump(original):
                return PoolUpdate(result=result, availability=describe_pool(working), changed=False)

            stmt = (
                update(SkuPool)
                .where(SkuPool.sku == sku, SkuPool.version == read_version)  # type: ignore[arg-type]
                .values(
                    sub_units=new_data,
                    last_number=working.last_number,
                    version=read_version + 1,
                    updated_at=utc_now(),
                )
            )
            try:
                cursor = await session.execute(stmt, execution_options={"synchronize_session": False})
                if cursor.rowcount != 1:  # type: ignore[attr-defined]
                    await session.rollback()
                    raise StalePoolError(sku, read_version)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceFailure(f"Failed to update SKU pool {sku}: {e}") from e

        return PoolUpdate(result=result, availability=describe_pool(working), changed=True)
