"""
WaWi -> BI Synchronization Service

Runs one full sync as a fixed sequence of batch steps:

1. platforms        WaWi platforms -> dim_platform, then build the id map
2. products         active WaWi materials -> dim_product
3. refprice_matrix  product x platform rows in product_refprice
4. shipping         completed purchase orders -> fact_shipping
5. sales            WaWi sales -> fact_sales (needs the platform id map)

Each step commits in its own transaction. A failed step does not stop
later independent steps; a step whose dependency did not complete is
skipped. A lost connection aborts the rest of the run. Every write is an
idempotent upsert, so an aborted or cancelled run is resumed simply by
running again.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import structlog
from pydantic import BaseModel, Field

from bisync.config.settings import Settings
from bisync.database.connection import Database
from bisync.exceptions import ConnectivityError, is_connectivity_error
from bisync.sync.dimensions import DimensionUpserter
from bisync.sync.facts import SalesReconciler, ShippingReconciler
from bisync.sync.matrix import RefPriceMatrixBuilder
from bisync.sync.reconciler import PlatformIdMap
from bisync.sync.records import TargetPlatform
from bisync.sync.source import WawiSource
from bisync.sync.target import BiTarget

logger = structlog.get_logger(__name__)


class SyncStep(str, Enum):
    """Sync steps in execution order"""
    PLATFORMS = "platforms"
    PRODUCTS = "products"
    REFPRICE_MATRIX = "refprice_matrix"
    SHIPPING = "shipping"
    SALES = "sales"


class StepStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class SyncStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


STEP_DEPENDENCIES: Dict[SyncStep, Tuple[SyncStep, ...]] = {
    SyncStep.REFPRICE_MATRIX: (SyncStep.PLATFORMS, SyncStep.PRODUCTS),
    SyncStep.SALES: (SyncStep.PLATFORMS,),
}


class StepResult(BaseModel):
    """Outcome of a single sync step"""
    step: SyncStep
    status: StepStatus
    rows_read: int = 0
    rows_synced: int = 0
    rows_skipped: int = 0
    error_message: Optional[str] = None
    duration_seconds: float = 0


class SyncResult(BaseModel):
    """Outcome of a whole sync run"""
    status: SyncStatus
    steps: List[StepResult] = Field(default_factory=list)
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SyncStatus.SUCCESS

    def step(self, step: SyncStep) -> Optional[StepResult]:
        for result in self.steps:
            if result.step == step:
                return result
        return None

    def _synced(self, step: SyncStep) -> int:
        result = self.step(step)
        return result.rows_synced if result else 0

    @property
    def platforms_synced(self) -> int:
        return self._synced(SyncStep.PLATFORMS)

    @property
    def products_synced(self) -> int:
        return self._synced(SyncStep.PRODUCTS)

    @property
    def shipping_synced(self) -> int:
        return self._synced(SyncStep.SHIPPING)

    @property
    def sales_synced(self) -> int:
        return self._synced(SyncStep.SALES)

    @property
    def rows_skipped(self) -> int:
        return sum(s.rows_skipped for s in self.steps)

    def to_response(self) -> Dict[str, Any]:
        """Caller-facing summary: success with counts, or failure with the reason"""
        if self.succeeded:
            return {
                "message": "Synchronization completed successfully",
                "counts": {
                    "platforms": self.platforms_synced,
                    "products": self.products_synced,
                    "shipping": self.shipping_synced,
                    "sales": self.sales_synced,
                    "skipped": self.rows_skipped,
                },
            }
        return {
            "message": "Synchronization failed",
            "error": self.error_message,
        }


@dataclass
class _RunContext:
    """State handed from earlier steps to later ones within one run"""
    product_ids: List[int] = field(default_factory=list)
    target_platforms: List[TargetPlatform] = field(default_factory=list)
    platform_map: Optional[PlatformIdMap] = None


class WawiBiSync:
    """
    Orchestrates a full WaWi -> BI sync run.

    Example:
        sync = WawiBiSync.from_settings(get_settings())
        try:
            result = await sync.run()
        finally:
            await sync.close()
    """

    def __init__(self, source: WawiSource, target: BiTarget):
        self.source = source
        self.target = target
        self.dimensions = DimensionUpserter(target)
        self.matrix = RefPriceMatrixBuilder(target)
        self.shipping = ShippingReconciler(target)
        self.sales = SalesReconciler(target)

    @classmethod
    def from_settings(cls, settings: Settings) -> "WawiBiSync":
        """Build the service and both stores from explicit settings"""
        source = WawiSource(
            Database.from_settings("wawi", settings.wawi_db),
            completed_status=settings.sync.completed_order_status,
        )
        target = BiTarget(Database.from_settings("bi", settings.bi_db))
        return cls(source, target)

    async def close(self) -> None:
        await self.source.database.dispose()
        await self.target.database.dispose()

    def _steps(self) -> List[Tuple[SyncStep, Callable[[_RunContext, StepResult], Awaitable[None]]]]:
        return [
            (SyncStep.PLATFORMS, self._sync_platforms),
            (SyncStep.PRODUCTS, self._sync_products),
            (SyncStep.REFPRICE_MATRIX, self._build_matrix),
            (SyncStep.SHIPPING, self._sync_shipping),
            (SyncStep.SALES, self._sync_sales),
        ]

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _sync_platforms(self, ctx: _RunContext, result: StepResult) -> None:
        platforms = await self.source.fetch_platforms()
        result.rows_read = len(platforms)
        result.rows_skipped = platforms.skipped

        await self.dimensions.sync_platforms(platforms)

        ctx.target_platforms = await self.target.list_platforms()
        ctx.platform_map = PlatformIdMap.build(platforms, ctx.target_platforms)
        result.rows_synced = len(ctx.target_platforms)

    async def _sync_products(self, ctx: _RunContext, result: StepResult) -> None:
        products = await self.source.fetch_products()
        result.rows_read = len(products)

        outcome = await self.dimensions.sync_products(products)
        ctx.product_ids = outcome.product_ids
        result.rows_synced = len(outcome.product_ids)
        result.rows_skipped = products.skipped + outcome.inactive_skipped

    async def _build_matrix(self, ctx: _RunContext, result: StepResult) -> None:
        platform_ids = [p.platform_id for p in ctx.target_platforms]
        result.rows_synced = await self.matrix.build(ctx.product_ids, platform_ids)

    async def _sync_shipping(self, ctx: _RunContext, result: StepResult) -> None:
        orders = await self.source.fetch_completed_orders()
        result.rows_read = len(orders)
        result.rows_skipped = orders.skipped
        result.rows_synced = await self.shipping.sync(orders)

    async def _sync_sales(self, ctx: _RunContext, result: StepResult) -> None:
        sales = await self.source.fetch_sales()
        result.rows_read = len(sales)

        outcome = await self.sales.sync(sales, ctx.platform_map)
        result.rows_synced = outcome.synced
        result.rows_skipped = sales.skipped + outcome.skipped_unmapped

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def _check_connectivity(self) -> None:
        await self.source.database.connect()
        await self.target.database.connect()

    async def _stores_reachable(self) -> bool:
        """Re-check both stores after a failed step"""
        try:
            await self._check_connectivity()
        except ConnectivityError as e:
            logger.error("Store unreachable after failed step", error=str(e))
            return False
        return True

    async def run(self) -> SyncResult:
        """
        Execute one full sync.

        Never raises for store or data errors; they are reported in the
        returned ``SyncResult``. Cancellation propagates.

        Returns:
            SyncResult: Overall status plus one ``StepResult`` per step
        """
        started_at = datetime.now(timezone.utc)
        run_start = time.perf_counter()
        result = SyncResult(status=SyncStatus.FAILED, started_at=started_at)

        logger.info("Starting WaWi -> BI sync")

        try:
            await self._check_connectivity()
        except ConnectivityError as e:
            result.error_message = str(e)
            for step, _ in self._steps():
                result.steps.append(StepResult(
                    step=step,
                    status=StepStatus.SKIPPED,
                    error_message="run aborted: store unreachable",
                ))
            return self._finish(result, run_start)

        ctx = _RunContext()
        statuses: Dict[SyncStep, StepStatus] = {}
        aborted: Optional[str] = None

        for step, handler in self._steps():
            if aborted is not None:
                step_result = StepResult(
                    step=step,
                    status=StepStatus.SKIPPED,
                    error_message=f"run aborted: {aborted}",
                )
            else:
                blocked = [
                    dep.value for dep in STEP_DEPENDENCIES.get(step, ())
                    if statuses.get(dep) != StepStatus.COMPLETED
                ]
                if blocked:
                    step_result = StepResult(
                        step=step,
                        status=StepStatus.SKIPPED,
                        error_message=f"depends on incomplete step(s): {', '.join(blocked)}",
                    )
                    logger.warning(
                        "Skipping sync step",
                        step=step.value,
                        blocked_by=blocked,
                    )
                else:
                    step_result, lost_connection = await self._run_step(step, handler, ctx)
                    if step_result.status == StepStatus.FAILED and not lost_connection:
                        lost_connection = not await self._stores_reachable()
                    if lost_connection:
                        aborted = f"connection lost during {step.value}"

            statuses[step] = step_result.status
            result.steps.append(step_result)

        failed = [s for s in result.steps if s.status == StepStatus.FAILED]
        if failed:
            result.error_message = "; ".join(
                f"step '{s.step.value}' failed: {s.error_message}" for s in failed
            )
        else:
            result.status = SyncStatus.SUCCESS

        return self._finish(result, run_start)

    async def _run_step(
        self,
        step: SyncStep,
        handler: Callable[[_RunContext, StepResult], Awaitable[None]],
        ctx: _RunContext,
    ) -> Tuple[StepResult, bool]:
        """Run one step; the flag is True when it failed because a store went away"""
        step_result = StepResult(step=step, status=StepStatus.COMPLETED)
        lost_connection = False
        start = time.perf_counter()
        logger.info("Sync step started", step=step.value)

        try:
            await handler(ctx, step_result)
        except Exception as e:
            step_result.status = StepStatus.FAILED
            step_result.error_message = f"{type(e).__name__}: {e}"
            lost_connection = is_connectivity_error(e)
            logger.error(
                "Sync step failed",
                step=step.value,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
        else:
            logger.info(
                "Sync step completed",
                step=step.value,
                rows_read=step_result.rows_read,
                rows_synced=step_result.rows_synced,
                rows_skipped=step_result.rows_skipped,
            )
        finally:
            step_result.duration_seconds = round(time.perf_counter() - start, 3)

        return step_result, lost_connection

    def _finish(self, result: SyncResult, run_start: float) -> SyncResult:
        result.completed_at = datetime.now(timezone.utc)
        result.duration_seconds = round(time.perf_counter() - run_start, 3)

        if result.succeeded:
            logger.info(
                "Synchronization completed successfully",
                platforms=result.platforms_synced,
                products=result.products_synced,
                shipping=result.shipping_synced,
                sales=result.sales_synced,
                skipped=result.rows_skipped,
                duration_seconds=result.duration_seconds,
            )
        else:
            logger.error(
                "Synchronization failed",
                error=result.error_message,
                duration_seconds=result.duration_seconds,
            )
        return result
