"""SKU pool database model and sub-unit entries."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel
from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from subsku.models.enums import SubUnitStatus
from subsku.models.types import JSONType, utc_now


class SubUnit(BaseModel):
    """One individually tracked, numbered instance of a base SKU."""

    name: str
    status: SubUnitStatus = SubUnitStatus.AVAILABLE

    @property
    def is_available(self) -> bool:
        return self.status == SubUnitStatus.AVAILABLE


class SkuPool(SQLModel, table=True):
    """All sub-units of one base SKU.

    ``sub_units`` keeps insertion order. ``version`` is bumped on every write
    and used as the compare-and-set token by SubSkuPoolStore. ``last_number``
    is the highest sub-unit number ever issued for the SKU; it survives
    removals so numbers are not reused.
    """

    __tablename__ = "sku_pools"

    sku: str = Field(primary_key=True, max_length=255)
    sub_units: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSONType, nullable=False),
    )
    version: int = Field(default=0, nullable=False)
    last_number: int = Field(default=0, nullable=False)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
