"""Product snapshot model used to diff product update webhooks."""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Column, DateTime
from sqlmodel import Field, SQLModel

from subsku.models.types import JSONType, utc_now


class ProductSnapshot(SQLModel, table=True):
    """Last seen state of a Shopify product.

    ``variants`` holds one dict per variant: title, sku, quantity, weight_in_grams.
    """

    __tablename__ = "product_snapshots"

    product_id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    title: str = ""
    vendor: str | None = None
    variants: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSONType, nullable=False),
    )
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))

    def variant_for_sku(self, sku: str) -> dict[str, Any] | None:
        """Return the stored variant with the given SKU, if any."""
        for variant in self.variants:
            if variant.get("sku") == sku:
                return variant
        return None
