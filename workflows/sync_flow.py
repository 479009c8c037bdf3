"""
Prefect Workflow Orchestration - WaWi -> BI Sync

Scheduled wrapper around one sync run. The run itself never retries;
re-running the whole flow on the next schedule is safe because every
write is idempotent.
"""

from prefect import flow, task, get_run_logger

from bisync.config import get_settings
from bisync.sync.service import WawiBiSync


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="run_wawi_bi_sync",
    description="Synchronize WaWi platforms, products, orders and sales into BI",
)
async def run_wawi_bi_sync() -> dict:
    """Run one sync and return its step-by-step result"""
    logger = get_run_logger()

    sync = WawiBiSync.from_settings(get_settings())
    try:
        result = await sync.run()
    finally:
        await sync.close()

    for step in result.steps:
        logger.info(
            f"{step.step.value}: {step.status.value} "
            f"(read={step.rows_read}, synced={step.rows_synced}, skipped={step.rows_skipped})"
        )

    if not result.succeeded:
        raise RuntimeError(result.error_message)

    return result.to_response()


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="wawi_bi_sync",
    description="Mirror WaWi operational data into the BI star schema",
)
async def wawi_bi_sync() -> dict:
    """WaWi -> BI synchronization flow"""
    logger = get_run_logger()
    logger.info("Starting WaWi -> BI sync flow")
    return await run_wawi_bi_sync()


if __name__ == "__main__":
    import asyncio

    asyncio.run(wawi_bi_sync())
