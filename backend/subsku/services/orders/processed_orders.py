"""Durable duplicate-check marker for order creation webhooks."""

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subsku.models.processed_order import ProcessedOrder
from subsku.models.types import utc_now
from subsku.services.exceptions import PersistenceFailure

logger = structlog.get_logger(__name__)


class ProcessedOrderStore:
    """Read and write ProcessedOrder markers."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get(self, order_id: int) -> ProcessedOrder | None:
        async with self._session_maker() as session:
            return await session.get(ProcessedOrder, order_id)

    async def mark_processed(self, order_id: int, assignments: dict[str, list[str]]) -> bool:
        """Record that allocation for ``order_id`` finished.

        Returns:
            False if a marker already existed (another run got there first)
        """
        async with self._session_maker() as session:
            session.add(ProcessedOrder(order_id=order_id, assignments=assignments))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning("Order already marked as processed", order_id=order_id)
                return False
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceFailure(f"Failed to mark order {order_id} processed: {e}") from e
        return True

    async def mark_ledger_synced(self, order_id: int) -> None:
        async with self._session_maker() as session:
            marker = await session.get(ProcessedOrder, order_id)
            if marker is None:
                return
            marker.ledger_synced = True
            marker.updated_at = utc_now()
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceFailure(f"Failed to update order marker {order_id}: {e}") from e
