"""
Unit Tests - Sync Service
"""
import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import text

from bisync.database.connection import Database
from bisync.database.models import (
    DimPlatform,
    DimProduct,
    FactSales,
    FactShipping,
    ProductRefPrice,
)
from bisync.database.wawi_models import Material, Sale, SalesPlatform
from bisync.sync.service import (
    StepStatus,
    SyncResult,
    SyncStatus,
    SyncStep,
    WawiBiSync,
)
from bisync.sync.source import WawiSource
from bisync.sync.target import BiTarget


async def _snapshot(bi):
    """Every BI row as plain tuples, for comparing runs"""
    return {
        "platforms": sorted((r.platform_id, r.name) for r in await bi.all(DimPlatform)),
        "products": sorted(
            (r.product_id, r.sku, r.name, r.ref_cost) for r in await bi.all(DimProduct)
        ),
        "refprices": sorted(
            (r.product_id, r.platform_id, r.ref_price) for r in await bi.all(ProductRefPrice)
        ),
        "shipping": sorted(
            (r.order_id, r.supplier_name, r.order_ts, r.arrival_ts, r.ship_cost)
            for r in await bi.all(FactShipping)
        ),
        "sales": sorted(
            (r.sale_id, r.product_id, r.platform_id, r.date, r.quantity, r.act_price, r.act_cost)
            for r in await bi.all(FactSales)
        ),
    }


class TestFullRun:
    """End-to-end runs against seeded stores"""

    async def test_successful_run(self, sync, seeded_wawi, bi):
        """Test a full run syncs every step"""
        result = await sync.run()

        assert result.status == SyncStatus.SUCCESS
        assert [s.step for s in result.steps] == list(SyncStep)
        assert all(s.status == StepStatus.COMPLETED for s in result.steps)
        assert result.platforms_synced == 2
        assert result.products_synced == 2
        assert result.shipping_synced == 1
        assert result.sales_synced == 2
        assert result.step(SyncStep.REFPRICE_MATRIX).rows_synced == 4
        assert result.step(SyncStep.PRODUCTS).rows_skipped == 1
        assert result.completed_at is not None

        snapshot = await _snapshot(bi)
        assert [p[0] for p in snapshot["products"]] == [101, 102]
        assert [(r[0], r[1]) for r in snapshot["refprices"]] == [
            (101, 1), (101, 2), (102, 1), (102, 2),
        ]
        assert snapshot["shipping"] == [
            (5001, "Acme GmbH", datetime(2025, 3, 1, 9, 0), datetime(2025, 3, 4, 15, 0), None),
        ]

    async def test_second_run_changes_nothing(self, sync, seeded_wawi, bi):
        """Test a second run leaves the BI store unchanged"""
        await sync.run()
        first = await _snapshot(bi)

        result = await sync.run()

        assert result.succeeded
        assert await _snapshot(bi) == first

    async def test_curated_fields_survive_rerun(self, sync, seeded_wawi, bi):
        """Manual BI edits stay while WaWi-owned fields follow the source"""
        await sync.run()
        await bi.update(FactShipping, FactShipping.order_id == 5001, ship_cost=Decimal("12.50"))
        await bi.update(
            FactSales, FactSales.sale_id == 9001,
            act_price=Decimal("9.99"), act_cost=Decimal("4.00"),
        )
        await bi.update(
            ProductRefPrice,
            (ProductRefPrice.product_id == 101) & (ProductRefPrice.platform_id == 1),
            ref_price=Decimal("19.99"),
        )
        await seeded_wawi.update(Sale, Sale.sale_id == 9001, quantity=3)

        await sync.run()

        shipping = await bi.get(FactShipping, 5001)
        sale = await bi.get(FactSales, 9001)
        assert shipping.ship_cost == Decimal("12.50")
        assert sale.quantity == 3
        assert (sale.act_price, sale.act_cost) == (Decimal("9.99"), Decimal("4.00"))
        assert (await bi.get(ProductRefPrice, (101, 1))).ref_price == Decimal("19.99")

    async def test_new_platform_extends_matrix(self, sync, seeded_wawi, bi):
        """Test a platform added in WaWi extends the price matrix"""
        await sync.run()
        await seeded_wawi.add(SalesPlatform(platform_id=3, name="Etsy"))

        result = await sync.run()

        assert result.step(SyncStep.REFPRICE_MATRIX).rows_synced == 6
        assert len(await bi.all(ProductRefPrice)) == 6

    async def test_deactivated_product_is_frozen(self, sync, seeded_wawi, bi):
        """Test a deactivated product keeps its last synced row"""
        await sync.run()
        await seeded_wawi.update(Material, Material.material_id == 101,
                                 active=False, name="Widget v2")

        result = await sync.run()

        assert result.products_synced == 1
        assert (await bi.get(DimProduct, 101)).name == "Widget"

    async def test_sale_on_unknown_platform_is_skipped(self, sync, seeded_wawi, bi):
        """Test a sale on an unknown platform is skipped without failing"""
        await seeded_wawi.add(
            Sale(sale_id=9100, material_id=101, platform_id=99,
                 sold_at=datetime(2025, 3, 12), quantity=1),
        )

        result = await sync.run()

        assert result.succeeded
        assert result.sales_synced == 2
        assert result.step(SyncStep.SALES).rows_skipped == 1
        assert await bi.get(FactSales, 9100) is None

    async def test_empty_source(self, sync, wawi, bi):
        """Test an empty WaWi store yields zero counts"""
        result = await sync.run()

        assert result.succeeded
        assert result.to_response()["counts"] == {
            "platforms": 0, "products": 0, "shipping": 0, "sales": 0, "skipped": 0,
        }


class TestConcurrentRuns:
    """Overlapping runs against the same stores"""

    async def test_overlapping_runs_stay_consistent(self, source, target, seeded_wawi, bi):
        """Test two simultaneous runs leave no duplicates and keep curated fields"""
        await WawiBiSync(source, target).run()
        await bi.update(FactShipping, FactShipping.order_id == 5001, ship_cost=Decimal("12.50"))
        await bi.update(
            FactSales, FactSales.sale_id == 9001,
            act_price=Decimal("9.99"), act_cost=Decimal("4.00"),
        )

        first, second = await asyncio.gather(
            WawiBiSync(source, target).run(),
            WawiBiSync(source, target).run(),
        )

        assert first.succeeded and second.succeeded
        assert len(await bi.all(DimPlatform)) == 2
        assert len(await bi.all(DimProduct)) == 2
        assert len(await bi.all(ProductRefPrice)) == 4
        assert (await bi.get(FactShipping, 5001)).ship_cost == Decimal("12.50")
        sale = await bi.get(FactSales, 9001)
        assert (sale.act_price, sale.act_cost) == (Decimal("9.99"), Decimal("4.00"))

    async def test_overlapping_first_runs(self, source, target, seeded_wawi, bi):
        """Test two simultaneous runs on an empty BI store build one matrix"""
        results = await asyncio.gather(
            WawiBiSync(source, target).run(),
            WawiBiSync(source, target).run(),
        )

        assert all(r.succeeded for r in results)
        pairs = sorted((r.product_id, r.platform_id) for r in await bi.all(ProductRefPrice))
        assert pairs == [(101, 1), (101, 2), (102, 1), (102, 2)]
        assert len(await bi.all(FactSales)) == 2


class TestFailureHandling:
    """Step failures, dependency skips and connectivity aborts"""

    async def test_failed_step_skips_dependents_only(self, sync, seeded_wawi, bi_db):
        """Test a failed step skips its dependents and nothing else"""
        async with bi_db.engine.begin() as conn:
            await conn.execute(text("DROP TABLE dim_product"))

        result = await sync.run()

        assert result.status == SyncStatus.FAILED
        assert result.step(SyncStep.PLATFORMS).status == StepStatus.COMPLETED
        assert result.step(SyncStep.PRODUCTS).status == StepStatus.FAILED
        assert result.step(SyncStep.REFPRICE_MATRIX).status == StepStatus.SKIPPED
        assert result.step(SyncStep.SHIPPING).status == StepStatus.COMPLETED
        assert result.step(SyncStep.SALES).status == StepStatus.COMPLETED
        assert "step 'products' failed" in result.error_message

    async def test_unreachable_store_aborts_before_writing(self, tmp_path, seeded_wawi, bi, bi_db):
        """Test an unreachable store skips every step"""
        missing = Database("wawi", f"sqlite+aiosqlite:///{tmp_path / 'nope' / 'wawi.db'}")
        sync = WawiBiSync(WawiSource(missing), BiTarget(bi_db))

        result = await sync.run()

        assert result.status == SyncStatus.FAILED
        assert all(s.status == StepStatus.SKIPPED for s in result.steps)
        assert "wawi database unreachable" in result.error_message
        assert await bi.all(DimPlatform) == []
        await missing.dispose()

    async def test_store_lost_mid_run_aborts_rest(self, sync, seeded_wawi, tmp_path, monkeypatch):
        """Test a store that becomes unreachable after the pre-flight aborts the run"""
        gone = Database("bi", f"sqlite+aiosqlite:///{tmp_path / 'gone' / 'bi.db'}")
        fetch_platforms = sync.source.fetch_platforms

        async def read_then_lose_bi():
            batch = await fetch_platforms()
            sync.target.database = gone
            return batch

        monkeypatch.setattr(sync.source, "fetch_platforms", read_then_lose_bi)

        try:
            result = await sync.run()
        finally:
            await gone.dispose()

        platforms = result.step(SyncStep.PLATFORMS)
        assert platforms.status == StepStatus.FAILED
        assert platforms.error_message.startswith("OperationalError")
        for step in (SyncStep.PRODUCTS, SyncStep.REFPRICE_MATRIX, SyncStep.SHIPPING, SyncStep.SALES):
            skipped = result.step(step)
            assert skipped.status == StepStatus.SKIPPED
            assert skipped.error_message == "run aborted: connection lost during platforms"
        assert result.status == SyncStatus.FAILED

    async def test_cancellation_propagates(self, sync, seeded_wawi, monkeypatch):
        """Test cancellation is not swallowed by the run"""
        async def cancelled(*args, **kwargs):
            raise asyncio.CancelledError()

        monkeypatch.setattr(sync.source, "fetch_sales", cancelled)

        with pytest.raises(asyncio.CancelledError):
            await sync.run()


class TestSyncResult:
    """Tests for the caller-facing response"""

    def test_failure_response(self):
        """Test the failure response carries the error"""
        result = SyncResult(
            status=SyncStatus.FAILED,
            started_at=datetime(2025, 1, 1),
            error_message="bi database unreachable: boom",
        )

        assert result.to_response() == {
            "message": "Synchronization failed",
            "error": "bi database unreachable: boom",
        }

    async def test_success_response(self, sync, seeded_wawi):
        """Test the success response carries the counts"""
        result = await sync.run()

        assert result.to_response() == {
            "message": "Synchronization completed successfully",
            "counts": {"platforms": 2, "products": 2, "shipping": 1, "sales": 2, "skipped": 1},
        }
