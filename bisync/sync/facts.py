"""
Fact Reconcilers

Upsert shipping and sales facts from WaWi while protecting the columns
BI users curate:

- ``fact_shipping.ship_cost`` is fill-once: a NULL cost may be filled by
  a later run, a non-NULL cost is never changed.
- ``fact_sales.act_price`` / ``act_cost`` are created NULL and never
  written again.
"""

from dataclasses import dataclass
from typing import Iterable

import structlog

from bisync.sync.reconciler import PlatformIdMap, UnmappedPlatform
from bisync.sync.records import WawiOrder, WawiSale
from bisync.sync.target import BiTarget

logger = structlog.get_logger(__name__)


@dataclass
class SalesSyncOutcome:
    synced: int = 0
    skipped_unmapped: int = 0


class ShippingReconciler:
    """Completed WaWi purchase orders -> ``fact_shipping``"""

    def __init__(self, target: BiTarget):
        self.target = target

    async def sync(self, orders: Iterable[WawiOrder]) -> int:
        rows = [
            {
                "order_id": order.order_id,
                "supplier_name": order.supplier_name,
                "order_ts": order.order_ts,
                "arrival_ts": order.arrival_ts,
                "ship_cost": None,
            }
            for order in orders
        ]
        written = await self.target.upsert_shipping(rows)
        logger.info("Upserted shipping facts", rows=written)
        return written


class SalesReconciler:
    """WaWi sales -> ``fact_sales``, translating platform ids"""

    def __init__(self, target: BiTarget):
        self.target = target

    async def sync(
        self,
        sales: Iterable[WawiSale],
        platform_map: PlatformIdMap,
    ) -> SalesSyncOutcome:
        """
        Upsert sales whose platform exists in BI.

        Sales on an unknown platform are skipped and logged; they do not
        fail the batch.
        """
        outcome = SalesSyncOutcome()
        rows = []
        for sale in sales:
            match = platform_map.lookup(sale.platform_id)
            if isinstance(match, UnmappedPlatform):
                outcome.skipped_unmapped += 1
                logger.warning(
                    "Skipping sale with unknown platform",
                    sale_id=sale.sale_id,
                    platform_id=sale.platform_id,
                )
                continue

            rows.append({
                "sale_id": sale.sale_id,
                "product_id": sale.material_id,
                "platform_id": match.target_id,
                "date": sale.sold_at,
                "quantity": sale.quantity,
                "act_price": None,
                "act_cost": None,
            })

        outcome.synced = await self.target.upsert_sales(rows)
        logger.info(
            "Upserted sales facts",
            rows=outcome.synced,
            skipped_unmapped=outcome.skipped_unmapped,
        )
        return outcome
