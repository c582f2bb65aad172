"""Inventory log rows (one per mutated sub-unit)."""

from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, Enum
from sqlmodel import Field, SQLModel

from subsku.models.enums import InventoryLogReason
from subsku.models.types import utc_now


class InventoryLogEntry(SQLModel, table=True):
    """Structured fact handed to the inventory log sink."""

    __tablename__ = "inventory_log_entries"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    sku: str = Field(index=True, max_length=255)
    sub_unit: str = Field(max_length=255)
    reason: InventoryLogReason = Field(
        sa_column=Column(
            Enum(
                InventoryLogReason,
                values_callable=lambda e: [x.value for x in e],
                name="inventorylogreason",
                native_enum=False,
                length=64,
            ),
            nullable=False,
        ),
    )
    quantity: int = 1
    order_id: int | None = Field(default=None, sa_type=BigInteger, index=True)
    reference: str | None = None  # e.g. refund id, order edit id, product title
