"""Product create/update flows and product snapshots."""

from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subsku.models.enums import InventoryLogReason
from subsku.models.product import ProductSnapshot
from subsku.models.types import utc_now
from subsku.services.exceptions import PersistenceFailure
from subsku.services.inventory.reconciliation_service import ReconciliationService
from subsku.utils.shopify_helpers import weight_to_grams
from subsku.webhooks.events import ProductCreated, ProductUpdated, ProductVariantInput

logger = structlog.get_logger(__name__)


@dataclass
class VariantSyncResult:
    sku: str
    previous_quantity: int
    quantity: int
    added: list[str] = field(default_factory=list)
    pool_created: bool = False
    weight_changed: bool = False


@dataclass
class ProductSyncResult:
    product_id: int
    variants: list[VariantSyncResult] = field(default_factory=list)
    snapshot_existed: bool = False


def snapshot_variant(variant: ProductVariantInput) -> dict[str, Any]:
    """Snapshot entry stored for one variant."""
    return {
        "id": variant.id,
        "title": variant.title,
        "sku": variant.sku,
        "quantity": variant.inventory_quantity,
        "weight_in_grams": weight_to_grams(variant.weight, variant.weight_unit),
    }


class ProductService:
    """Keep pools in step with product webhooks.

    Product updates are diffed against the last stored snapshot: a quantity
    increase is appended to the pool as new sub-units. Decreases are left to
    the inventory level webhook. Weight changes are only recorded in the
    snapshot.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        reconciliation: ReconciliationService,
    ):
        self._session_maker = session_maker
        self.reconciliation = reconciliation

    async def get_snapshot(self, product_id: int) -> ProductSnapshot | None:
        async with self._session_maker() as session:
            return await session.get(ProductSnapshot, product_id)

    async def process_product_created(self, event: ProductCreated) -> ProductSyncResult:
        """Create a pool for every variant SKU that has none yet."""
        logger.info("Processing product create", product_id=event.product_id, title=event.title)

        existing = await self.get_snapshot(event.product_id)
        result = ProductSyncResult(product_id=event.product_id, snapshot_existed=existing is not None)
        store = self.reconciliation.store

        for variant in event.variants:
            if not variant.sku:
                continue
            sku = variant.sku
            quantity = max(variant.inventory_quantity, 0)
            variant_result = VariantSyncResult(sku=sku, previous_quantity=0, quantity=quantity)

            if await store.get(sku) is None:
                if quantity > 0:
                    variant_result.added = await self.reconciliation.add_sub_units(
                        sku,
                        quantity,
                        reason=InventoryLogReason.PRODUCT_CREATED,
                        reference=event.title or None,
                    )
                else:
                    await store.create(sku, [])
                variant_result.pool_created = True
                logger.info("Created SKU pool for new product", sku=sku, quantity=quantity)
            else:
                logger.info("SKU pool already exists", sku=sku)

            result.variants.append(variant_result)

        await self._save_snapshot(event)
        return result

    async def process_product_updated(self, event: ProductUpdated) -> ProductSyncResult:
        """Append new sub-units for every variant whose quantity increased.

        Without a stored snapshot every variant counts as new, so its whole
        quantity is added.
        """
        snapshot = await self.get_snapshot(event.product_id)
        if snapshot is None:
            logger.info("Product not seen before, treating as new", product_id=event.product_id)

        result = ProductSyncResult(product_id=event.product_id, snapshot_existed=snapshot is not None)

        for variant in event.variants:
            if not variant.sku:
                continue
            sku = variant.sku
            previous = snapshot.variant_for_sku(sku) if snapshot else None
            old_quantity = int(previous.get("quantity") or 0) if previous else 0
            new_quantity = variant.inventory_quantity
            new_weight = weight_to_grams(variant.weight, variant.weight_unit)

            variant_result = VariantSyncResult(
                sku=sku,
                previous_quantity=old_quantity,
                quantity=new_quantity,
                weight_changed=previous is not None and previous.get("weight_in_grams") != new_weight,
            )

            if new_quantity > old_quantity:
                variant_result.added = await self.reconciliation.add_sub_units(
                    sku,
                    new_quantity - old_quantity,
                    reference=event.title or None,
                )

            logger.info(
                "Compared product variant",
                sku=sku,
                old_quantity=old_quantity,
                new_quantity=new_quantity,
                added=len(variant_result.added),
                weight_changed=variant_result.weight_changed,
            )
            result.variants.append(variant_result)

        await self._save_snapshot(event)
        return result

    async def _save_snapshot(self, event: ProductCreated | ProductUpdated) -> None:
        variants = [snapshot_variant(variant) for variant in event.variants if variant.sku]

        async with self._session_maker() as session:
            try:
                snapshot = await session.get(ProductSnapshot, event.product_id)
                if snapshot is None:
                    session.add(
                        ProductSnapshot(
                            product_id=event.product_id,
                            title=event.title,
                            vendor=event.vendor,
                            variants=variants,
                        )
                    )
                else:
                    snapshot.title = event.title
                    snapshot.vendor = event.vendor
                    snapshot.variants = variants
                    snapshot.updated_at = utc_now()
                await session.commit()
            except IntegrityError:
                # Inserted concurrently; the other write holds the same product
                await session.rollback()
                logger.info("Product snapshot saved concurrently", product_id=event.product_id)
                return
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceFailure(f"Failed to save product snapshot {event.product_id}: {e}") from e

        logger.info("Saved product snapshot", product_id=event.product_id, variants=len(variants))
