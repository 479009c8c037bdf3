"""
BI Reporting Queries

Aggregates over the star schema for the dashboard. Raw fact rows are read
with SQLAlchemy and aggregated with Polars, which keeps the queries
independent of dialect-specific date functions.

Revenue is ``quantity * act_price`` and profit is
``quantity * (act_price - act_cost)``; sales whose curated fields are
still NULL contribute quantity but no revenue or profit.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import polars as pl
import structlog
from sqlalchemy import select

from bisync.database.connection import Database
from bisync.database.models import DimPlatform, DimProduct, FactSales, FactShipping

logger = structlog.get_logger(__name__)


def _plain(row: Dict[str, Any]) -> Dict[str, Any]:
    """Decimal -> float so Polars infers Float64 columns"""
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in row.items()}


async def _read_frame(
    database: Database,
    stmt,
    schema: Dict[str, pl.DataType],
) -> pl.DataFrame:
    async with database.session() as session:
        result = await session.execute(stmt)
        rows: List[Dict[str, Any]] = [_plain(dict(r)) for r in result.mappings()]
    logger.debug("Loaded report rows", columns=list(schema), rows=len(rows))
    return pl.DataFrame(rows, schema=schema)


def _with_revenue_and_profit(df: pl.DataFrame) -> pl.DataFrame:
    return df.with_columns([
        (pl.col("quantity") * pl.col("act_price")).alias("revenue"),
        (pl.col("quantity") * (pl.col("act_price") - pl.col("act_cost"))).alias("profit"),
    ])


_SALES_SCHEMA = {
    "quantity": pl.Int64,
    "act_price": pl.Float64,
    "act_cost": pl.Float64,
}


async def sales_summary_by_platform(database: Database) -> pl.DataFrame:
    """
    Quantity, revenue and profit per platform, highest revenue first.

    Returns:
        pl.DataFrame: platform, total_sales_count, total_revenue, total_profit
    """
    stmt = select(
        DimPlatform.name.label("platform"),
        FactSales.quantity,
        FactSales.act_price,
        FactSales.act_cost,
    ).join(DimPlatform, DimPlatform.platform_id == FactSales.platform_id)

    df = await _read_frame(database, stmt, {"platform": pl.Utf8, **_SALES_SCHEMA})

    return (
        _with_revenue_and_profit(df)
        .group_by("platform")
        .agg([
            pl.col("quantity").sum().alias("total_sales_count"),
            pl.col("revenue").sum().alias("total_revenue"),
            pl.col("profit").sum().alias("total_profit"),
        ])
        .sort(["total_revenue", "platform"], descending=[True, False])
    )


async def bestsellers(database: Database, limit: int = 10) -> pl.DataFrame:
    """
    Top products by units sold.

    Returns:
        pl.DataFrame: name, total_quantity, total_revenue, total_profit
    """
    stmt = select(
        DimProduct.name.label("name"),
        FactSales.quantity,
        FactSales.act_price,
        FactSales.act_cost,
    ).join(DimProduct, DimProduct.product_id == FactSales.product_id)

    df = await _read_frame(database, stmt, {"name": pl.Utf8, **_SALES_SCHEMA})

    return (
        _with_revenue_and_profit(df)
        .group_by("name")
        .agg([
            pl.col("quantity").sum().alias("total_quantity"),
            pl.col("revenue").sum().alias("total_revenue"),
            pl.col("profit").sum().alias("total_profit"),
        ])
        .sort(["total_quantity", "name"], descending=[True, False])
        .head(limit)
    )


async def product_summary(database: Database, product_id: int) -> Optional[Dict[str, Any]]:
    """Sales totals for one product, or None if the product is unknown"""
    async with database.session() as session:
        product = await session.get(DimProduct, product_id)
        if product is None:
            return None
        summary: Dict[str, Any] = {
            "product_id": product.product_id,
            "name": product.name,
            "sku": product.sku,
        }

    stmt = select(
        FactSales.quantity,
        FactSales.act_price,
        FactSales.act_cost,
    ).where(FactSales.product_id == product_id)
    df = _with_revenue_and_profit(await _read_frame(database, stmt, _SALES_SCHEMA))

    avg_price = df["act_price"].mean() if len(df) else None
    summary.update({
        "total_sales": len(df),
        "total_quantity": int(df["quantity"].sum()),
        "avg_price": round(avg_price, 2) if avg_price is not None else None,
        "total_revenue": float(df["revenue"].sum()),
    })
    return summary


async def shipping_summary_by_supplier(
    database: Database,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> pl.DataFrame:
    """
    Shipping cost and delivery time per supplier.

    Args:
        start: Only orders placed at or after this time
        end: Only orders placed at or before this time

    Returns:
        pl.DataFrame: supplier_name, total_shipping_cost,
        average_delivery_time_days (delivered orders only), orders
    """
    stmt = select(
        FactShipping.supplier_name,
        FactShipping.order_ts,
        FactShipping.arrival_ts,
        FactShipping.ship_cost,
    )
    if start is not None:
        stmt = stmt.where(FactShipping.order_ts >= start)
    if end is not None:
        stmt = stmt.where(FactShipping.order_ts <= end)

    df = await _read_frame(database, stmt, {
        "supplier_name": pl.Utf8,
        "order_ts": pl.Datetime,
        "arrival_ts": pl.Datetime,
        "ship_cost": pl.Float64,
    })

    return (
        df.with_columns(
            (pl.col("arrival_ts") - pl.col("order_ts")).dt.total_days().alias("delivery_days")
        )
        .group_by("supplier_name")
        .agg([
            pl.col("ship_cost").sum().alias("total_shipping_cost"),
            pl.col("delivery_days").mean().alias("average_delivery_time_days"),
            pl.len().alias("orders"),
        ])
        .sort("supplier_name")
    )
