"""
WaWi Source Schema

Read-only mirror of the warehouse-management tables the sync reads. The
physical column names are WaWi's; attributes are named for what they hold.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class WawiBase(DeclarativeBase):
    """Base class for WaWi tables"""
    pass


class SalesPlatform(WawiBase):
    """Sales platform (``plattform_verkauf``)"""
    __tablename__ = "plattform_verkauf"

    platform_id: Mapped[int] = mapped_column("platform_id_sale", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("name", String(255), nullable=False)


class Material(WawiBase):
    """Material / product master (``material``)"""
    __tablename__ = "material"

    material_id: Mapped[int] = mapped_column("MatID", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("Name", String(255), nullable=False)
    sku: Mapped[str] = mapped_column("SKU", String(100), nullable=False)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column("EKPreis", Numeric(10, 2))
    active: Mapped[Optional[bool]] = mapped_column("Active", Boolean)


class Supplier(WawiBase):
    """Supplier (``lieferant``)"""
    __tablename__ = "lieferant"

    supplier_id: Mapped[int] = mapped_column("LiefID", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("Name", String(255), nullable=False)


class PurchaseOrder(WawiBase):
    """Purchase order (``bestellung``)"""
    __tablename__ = "bestellung"

    order_id: Mapped[int] = mapped_column("BestellID", Integer, primary_key=True)
    supplier_id: Mapped[int] = mapped_column("LiefID", Integer, nullable=False)
    ordered_at: Mapped[datetime] = mapped_column("Bestelldatum", DateTime, nullable=False)
    received_at: Mapped[Optional[datetime]] = mapped_column("EingangZeitStempel", DateTime)
    status: Mapped[str] = mapped_column("Status", String(50), nullable=False)


class Sale(WawiBase):
    """Sale event (``verkauf``)"""
    __tablename__ = "verkauf"

    sale_id: Mapped[int] = mapped_column("VerkID", Integer, primary_key=True)
    material_id: Mapped[int] = mapped_column("MatID", Integer, nullable=False)
    platform_id: Mapped[int] = mapped_column("platform_id_sale", Integer, nullable=False)
    sold_at: Mapped[datetime] = mapped_column("ts", DateTime, nullable=False)
    quantity: Mapped[Optional[int]] = mapped_column("Menge", Integer)
