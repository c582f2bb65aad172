"""Inventory log sink.

Flows hand over one structured row per mutated sub-unit (SKU, sub-unit,
reason, quantity, order). How the rows are rendered for humans is up to the
sink; the default one stores them in ``inventory_log_entries``.
"""

from collections.abc import Iterable, Sequence
from typing import Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subsku.models.enums import InventoryLogReason
from subsku.models.inventory_log import InventoryLogEntry

logger = structlog.get_logger(__name__)


class InventoryLogSink(Protocol):
    """Receives inventory log rows."""

    async def append(self, entries: Sequence[InventoryLogEntry]) -> None: ...


def sub_unit_entries(
    sku: str,
    sub_units: Iterable[str],
    reason: InventoryLogReason,
    *,
    order_id: int | None = None,
    reference: str | None = None,
) -> list[InventoryLogEntry]:
    """One row per sub-unit name."""
    return [
        InventoryLogEntry(sku=sku, sub_unit=name, reason=reason, quantity=1, order_id=order_id, reference=reference)
        for name in sub_units
    ]


class DatabaseInventoryLog:
    """Inventory log sink writing rows to the database.

    Logging is best-effort: a failed write is reported but never undoes or
    fails the pool mutation it describes.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def append(self, entries: Sequence[InventoryLogEntry]) -> None:
        if not entries:
            return

        async with self._session_maker() as session:
            session.add_all(entries)
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Failed to write inventory log rows", rows=len(entries), error=str(e))
                return

        logger.info(
            "Wrote inventory log rows",
            rows=len(entries),
            reasons=sorted({entry.reason.value for entry in entries}),
        )
