"""
WaWi Source Connector

Read-only queries against the operational schema. Every call re-reads
the full table; there is no incremental cursor.
"""

from typing import Any, Iterable, Mapping, Type

import structlog
from pydantic import ValidationError
from sqlalchemy import select

from bisync.database.connection import Database
from bisync.database.wawi_models import (
    Material,
    PurchaseOrder,
    Sale,
    SalesPlatform,
    Supplier,
)
from bisync.sync.records import (
    SourceBatch,
    T,
    WawiOrder,
    WawiPlatform,
    WawiProduct,
    WawiSale,
)

logger = structlog.get_logger(__name__)

DEFAULT_COMPLETED_STATUS = "abgeschlossen"


class WawiSource:
    """
    Reads platforms, products, completed orders and sales from WaWi.

    Example:
        source = WawiSource(Database("wawi", url))
        platforms = await source.fetch_platforms()
    """

    def __init__(
        self,
        database: Database,
        completed_status: str = DEFAULT_COMPLETED_STATUS,
    ):
        self.database = database
        self.completed_status = completed_status

    async def _fetch(self, stmt, model: Type[T], entity: str) -> SourceBatch[T]:
        async with self.database.session() as session:
            result = await session.execute(stmt)
            rows = result.mappings().all()

        batch = _validate_rows(rows, model, entity)
        logger.info(
            "Read source rows",
            entity=entity,
            rows=len(batch),
            skipped=batch.skipped,
        )
        return batch

    async def fetch_platforms(self) -> SourceBatch[WawiPlatform]:
        stmt = select(
            SalesPlatform.platform_id.label("platform_id"),
            SalesPlatform.name.label("name"),
        ).order_by(SalesPlatform.platform_id)
        return await self._fetch(stmt, WawiPlatform, "platform")

    async def fetch_products(self) -> SourceBatch[WawiProduct]:
        """All materials, active or not; the upserter decides what to skip"""
        stmt = select(
            Material.material_id.label("material_id"),
            Material.name.label("name"),
            Material.sku.label("sku"),
            Material.purchase_price.label("purchase_price"),
            Material.active.label("active"),
        ).order_by(Material.material_id)
        return await self._fetch(stmt, WawiProduct, "product")

    async def fetch_completed_orders(self) -> SourceBatch[WawiOrder]:
        stmt = (
            select(
                PurchaseOrder.order_id.label("order_id"),
                PurchaseOrder.ordered_at.label("order_ts"),
                PurchaseOrder.received_at.label("arrival_ts"),
                Supplier.name.label("supplier_name"),
            )
            .join(Supplier, Supplier.supplier_id == PurchaseOrder.supplier_id)
            .where(PurchaseOrder.status == self.completed_status)
            .order_by(PurchaseOrder.order_id)
        )
        return await self._fetch(stmt, WawiOrder, "order")

    async def fetch_sales(self) -> SourceBatch[WawiSale]:
        stmt = select(
            Sale.sale_id.label("sale_id"),
            Sale.material_id.label("material_id"),
            Sale.platform_id.label("platform_id"),
            Sale.sold_at.label("sold_at"),
            Sale.quantity.label("quantity"),
        ).order_by(Sale.sale_id)
        return await self._fetch(stmt, WawiSale, "sale")


def _validate_rows(
    rows: Iterable[Mapping[str, Any]],
    model: Type[T],
    entity: str,
) -> SourceBatch[T]:
    """Validate raw rows into ``model``; rejected rows are logged and counted"""
    batch: SourceBatch[T] = SourceBatch()
    for row in rows:
        try:
            batch.records.append(model.model_validate(dict(row)))
        except ValidationError as e:
            batch.skipped += 1
            logger.warning(
                "Skipping malformed source row",
                entity=entity,
                row=dict(row),
                errors=e.errors(include_url=False),
            )
    return batch
