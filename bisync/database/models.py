"""
Database Models - BI Star Schema

The analytical schema this sync maintains:

Dimension Tables:
- DimPlatform: Sales platforms (ids shared with WaWi)
- DimProduct: Products (ids are WaWi material ids)
- ProductRefPrice: Product x platform reference price matrix

Fact Tables:
- FactShipping: Completed purchase orders with delivery timing
- FactSales: Individual sales with curated price/cost

Curated columns (``ref_price``, ``ship_cost``, ``act_price``, ``act_cost``)
are owned by BI users; the sync only ever creates them as NULL.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all BI models"""
    pass


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class DimPlatform(Base):
    """
    Platform Dimension Table

    Keyed by the WaWi platform id; the two systems share the id space.
    """
    __tablename__ = "dim_platform"

    platform_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class DimProduct(Base):
    """
    Product Dimension Table

    ``ref_cost`` mirrors the WaWi purchase price and is overwritten on sync.
    """
    __tablename__ = "dim_product"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    ref_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    __table_args__ = (
        Index("ix_dim_product_sku", "sku"),
    )


class ProductRefPrice(Base):
    """
    Product x Platform Reference Price

    One row per pair; ``ref_price`` is maintained by BI users.
    """
    __tablename__ = "product_refprice"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    platform_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    ref_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))


# =============================================================================
# FACT TABLES
# =============================================================================

class FactShipping(Base):
    """
    Shipping Fact Table

    One row per completed WaWi purchase order. ``ship_cost`` is filled once
    and never overwritten afterwards.
    """
    __tablename__ = "fact_shipping"

    order_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    supplier_name: Mapped[str] = mapped_column(String(255), nullable=False)
    order_ts: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    arrival_ts: Mapped[Optional[datetime]] = mapped_column(DateTime)
    ship_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    __table_args__ = (
        Index("ix_fact_shipping_supplier", "supplier_name"),
        Index("ix_fact_shipping_order_ts", "order_ts"),
    )


class FactSales(Base):
    """
    Sales Fact Table

    One row per WaWi sale. ``act_price`` and ``act_cost`` are created NULL
    and are never touched by the sync again.
    """
    __tablename__ = "fact_sales"

    sale_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_id: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    act_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    act_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    __table_args__ = (
        Index("ix_fact_sales_product", "product_id"),
        Index("ix_fact_sales_platform", "platform_id"),
        Index("ix_fact_sales_date", "date"),
    )
