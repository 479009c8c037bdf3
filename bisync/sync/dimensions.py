"""
Dimension Upserter

Projects WaWi platforms and products into ``dim_platform`` and
``dim_product``. Pure upserts keyed on id: rows are never deleted, and
inactive products are neither inserted nor updated.
"""

from dataclasses import dataclass, field
from typing import Iterable, List

import structlog

from bisync.sync.records import WawiPlatform, WawiProduct
from bisync.sync.target import BiTarget

logger = structlog.get_logger(__name__)


@dataclass
class ProductSyncOutcome:
    """Products written in this run and how many were skipped as inactive"""
    product_ids: List[int] = field(default_factory=list)
    inactive_skipped: int = 0


class DimensionUpserter:
    """Upserts platform and product dimensions into BI"""

    def __init__(self, target: BiTarget):
        self.target = target

    async def sync_platforms(self, platforms: Iterable[WawiPlatform]) -> int:
        rows = [{"platform_id": p.platform_id, "name": p.name} for p in platforms]
        written = await self.target.upsert_platforms(rows)
        logger.info("Upserted platforms", rows=written)
        return written

    async def sync_products(self, products: Iterable[WawiProduct]) -> ProductSyncOutcome:
        """
        Upsert active products.

        ``ref_cost`` always takes the WaWi purchase price, including NULL.
        """
        outcome = ProductSyncOutcome()
        rows = []
        for product in products:
            if not product.is_active:
                outcome.inactive_skipped += 1
                continue
            rows.append({
                "product_id": product.material_id,
                "sku": product.sku,
                "name": product.name,
                "ref_cost": product.purchase_price,
            })
            outcome.product_ids.append(product.material_id)

        await self.target.upsert_products(rows)
        logger.info(
            "Upserted products",
            rows=len(rows),
            inactive_skipped=outcome.inactive_skipped,
        )
        return outcome
