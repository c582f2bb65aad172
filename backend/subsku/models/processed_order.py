"""Durable marker for orders whose creation webhook has been processed."""

from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime
from sqlmodel import Field, SQLModel

from subsku.models.types import JSONType, utc_now


class ProcessedOrder(SQLModel, table=True):
    """Order creation processed marker.

    ``assignments`` is the local copy of the assignment ledger written when
    allocation finished; ``ledger_synced`` turns True once the same map has
    been stored as the order metafield.
    """

    __tablename__ = "processed_orders"

    order_id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    assignments: dict[str, list[str]] = Field(
        default_factory=dict,
        sa_column=Column(JSONType, nullable=False),
    )
    ledger_synced: bool = False
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
