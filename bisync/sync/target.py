"""
BI Target Store

Writes to the star schema as single-statement, conflict-resolving
inserts so that every write is atomic and safe to repeat, even when two
sync runs overlap. Each public write runs in its own transaction.

Column handling on conflict:
- overwrite: take the incoming value
- fill: keep the existing value unless it is NULL (``COALESCE``)
- anything else: left untouched
"""

from typing import Any, Dict, List, Sequence

import structlog
from sqlalchemy import Table, func, select
from sqlalchemy.dialects import mysql, postgresql, sqlite

from bisync.database.connection import Database
from bisync.database.models import (
    DimPlatform,
    DimProduct,
    FactSales,
    FactShipping,
    ProductRefPrice,
)
from bisync.exceptions import UnsupportedDialectError
from bisync.sync.records import TargetPlatform

logger = structlog.get_logger(__name__)

Row = Dict[str, Any]

_ON_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class BiTarget:
    """
    Read/write access to the BI tables maintained by the sync.

    Supports MySQL (``ON DUPLICATE KEY UPDATE`` / ``INSERT IGNORE``) and
    PostgreSQL/SQLite (``ON CONFLICT``).
    """

    def __init__(self, database: Database):
        self.database = database

    @property
    def dialect(self) -> str:
        return self.database.dialect_name

    def _upsert_statement(
        self,
        table: Table,
        key_columns: Sequence[str],
        overwrite: Sequence[str] = (),
        fill: Sequence[str] = (),
    ):
        """Build an insert whose conflict branch applies overwrite/fill rules"""
        if self.dialect == "mysql":
            stmt = mysql.insert(table)
            incoming = stmt.inserted
        elif self.dialect in _ON_CONFLICT_INSERTS:
            stmt = _ON_CONFLICT_INSERTS[self.dialect](table)
            incoming = stmt.excluded
        else:
            raise UnsupportedDialectError(self.dialect)

        set_ = {column: incoming[column] for column in overwrite}
        for column in fill:
            set_[column] = func.coalesce(table.c[column], incoming[column])

        if self.dialect == "mysql":
            return stmt.on_duplicate_key_update(set_)
        return stmt.on_conflict_do_update(index_elements=list(key_columns), set_=set_)

    def _insert_ignore_statement(self, table: Table, key_columns: Sequence[str]):
        """Build an insert that silently keeps existing rows on key conflict"""
        if self.dialect == "mysql":
            return mysql.insert(table).prefix_with("IGNORE")
        if self.dialect in _ON_CONFLICT_INSERTS:
            stmt = _ON_CONFLICT_INSERTS[self.dialect](table)
            return stmt.on_conflict_do_nothing(index_elements=list(key_columns))
        raise UnsupportedDialectError(self.dialect)

    async def _execute_many(self, stmt, rows: List[Row], table: Table) -> int:
        if not rows:
            return 0
        async with self.database.session() as session:
            await session.execute(stmt, rows)
        logger.debug("Wrote rows", table=table.name, rows=len(rows))
        return len(rows)

    # -------------------------------------------------------------------------
    # Dimensions
    # -------------------------------------------------------------------------

    async def upsert_platforms(self, rows: List[Row]) -> int:
        """Insert platforms, refreshing ``name`` of existing ones"""
        table = DimPlatform.__table__
        stmt = self._upsert_statement(table, ["platform_id"], overwrite=["name"])
        return await self._execute_many(stmt, rows, table)

    async def upsert_products(self, rows: List[Row]) -> int:
        """Insert products, overwriting every non-key column of existing ones"""
        table = DimProduct.__table__
        stmt = self._upsert_statement(
            table,
            ["product_id"],
            overwrite=["sku", "name", "ref_cost"],
        )
        return await self._execute_many(stmt, rows, table)

    async def list_platforms(self) -> List[TargetPlatform]:
        async with self.database.session() as session:
            result = await session.execute(
                select(DimPlatform.platform_id, DimPlatform.name).order_by(DimPlatform.platform_id)
            )
            return [TargetPlatform.model_validate(dict(r)) for r in result.mappings()]

    async def ensure_refprices(self, rows: List[Row]) -> int:
        """Create missing (product_id, platform_id) rows; existing rows are untouched"""
        table = ProductRefPrice.__table__
        stmt = self._insert_ignore_statement(table, ["product_id", "platform_id"])
        return await self._execute_many(stmt, rows, table)

    # -------------------------------------------------------------------------
    # Facts
    # -------------------------------------------------------------------------

    async def upsert_shipping(self, rows: List[Row]) -> int:
        """Upsert shipping facts; ``ship_cost`` is fill-once"""
        table = FactShipping.__table__
        stmt = self._upsert_statement(
            table,
            ["order_id"],
            overwrite=["supplier_name", "order_ts", "arrival_ts"],
            fill=["ship_cost"],
        )
        return await self._execute_many(stmt, rows, table)

    async def upsert_sales(self, rows: List[Row]) -> int:
        """Upsert sales facts; ``act_price``/``act_cost`` are only set on insert"""
        table = FactSales.__table__
        stmt = self._upsert_statement(
            table,
            ["sale_id"],
            overwrite=["product_id", "platform_id", "date", "quantity"],
        )
        return await self._execute_many(stmt, rows, table)
