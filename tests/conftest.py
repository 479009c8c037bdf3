"""
Test Suite Configuration

Every test gets two fresh SQLite files: one with the WaWi schema, one with
the BI star schema.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Type

import pytest
from sqlalchemy import select, update

from bisync.config.logging import configure_logging
from bisync.config.settings import Settings
from bisync.database.connection import Database
from bisync.database.models import Base
from bisync.database.wawi_models import (
    Material,
    PurchaseOrder,
    Sale,
    SalesPlatform,
    Supplier,
    WawiBase,
)
from bisync.sync.service import WawiBiSync
from bisync.sync.source import WawiSource
from bisync.sync.target import BiTarget


class StoreHelper:
    """Small ORM helper for arranging and inspecting a test database"""

    def __init__(self, database: Database):
        self.database = database

    async def add(self, *objects: Any) -> None:
        async with self.database.session() as session:
            session.add_all(objects)

    async def update(self, model: Type, where, **values: Any) -> None:
        async with self.database.session() as session:
            await session.execute(update(model).where(where).values(**values))

    async def get(self, model: Type, key: Any):
        async with self.database.session() as session:
            return await session.get(model, key)

    async def all(self, model: Type) -> List[Any]:
        async with self.database.session() as session:
            result = await session.execute(select(model))
            return list(result.scalars().all())


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    """Route structlog through stdlib logging so pytest captures it"""
    configure_logging("INFO", settings=Settings(app_env="testing"))


async def _create_database(name: str, path, metadata) -> Database:
    database = Database(name, f"sqlite+aiosqlite:///{path}")
    async with database.engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    return database


@pytest.fixture
async def wawi_db(tmp_path):
    """WaWi source database"""
    database = await _create_database("wawi", tmp_path / "wawi.db", WawiBase.metadata)
    yield database
    await database.dispose()


@pytest.fixture
async def bi_db(tmp_path):
    """BI target database"""
    database = await _create_database("bi", tmp_path / "bi.db", Base.metadata)
    yield database
    await database.dispose()


@pytest.fixture
def wawi(wawi_db) -> StoreHelper:
    return StoreHelper(wawi_db)


@pytest.fixture
def bi(bi_db) -> StoreHelper:
    return StoreHelper(bi_db)


@pytest.fixture
def source(wawi_db) -> WawiSource:
    return WawiSource(wawi_db)


@pytest.fixture
def target(bi_db) -> BiTarget:
    return BiTarget(bi_db)


@pytest.fixture
def sync(source, target) -> WawiBiSync:
    return WawiBiSync(source, target)


@pytest.fixture
async def seeded_wawi(wawi) -> StoreHelper:
    """
    A small WaWi data set:

    - platforms 1 (Amazon), 2 (eBay)
    - products 101, 102 active; 103 inactive
    - orders 5001 (completed, delivered), 5002 (open)
    - sales 9001 (101 on 1), 9002 (102 on 2)
    """
    await wawi.add(
        SalesPlatform(platform_id=1, name="Amazon"),
        SalesPlatform(platform_id=2, name="eBay"),
        Material(material_id=101, name="Widget", sku="W-101",
                 purchase_price=Decimal("3.50"), active=True),
        Material(material_id=102, name="Gadget", sku="G-102",
                 purchase_price=None, active=True),
        Material(material_id=103, name="Retired", sku="R-103",
                 purchase_price=Decimal("1.00"), active=False),
        Supplier(supplier_id=1, name="Acme GmbH"),
        PurchaseOrder(order_id=5001, supplier_id=1,
                      ordered_at=datetime(2025, 3, 1, 9, 0),
                      received_at=datetime(2025, 3, 4, 15, 0),
                      status="abgeschlossen"),
        PurchaseOrder(order_id=5002, supplier_id=1,
                      ordered_at=datetime(2025, 3, 2, 9, 0),
                      received_at=None,
                      status="offen"),
        Sale(sale_id=9001, material_id=101, platform_id=1,
             sold_at=datetime(2025, 3, 10, 12, 0), quantity=2),
        Sale(sale_id=9002, material_id=102, platform_id=2,
             sold_at=datetime(2025, 3, 11, 12, 0), quantity=1),
    )
    return wawi
