"""
Typed rows exchanged between the sync components.

Source rows are validated on read; a row that does not fit its model is
a malformed source row and is skipped by the connector.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict


class SourceRecord(BaseModel):
    """Base for validated WaWi rows"""

    model_config = ConfigDict(frozen=True)


class WawiPlatform(SourceRecord):
    """``plattform_verkauf`` row"""
    platform_id: int
    name: str


class WawiProduct(SourceRecord):
    """``material`` row"""
    material_id: int
    name: str
    sku: str
    purchase_price: Optional[Decimal] = None
    active: Optional[bool] = None

    @property
    def is_active(self) -> bool:
        """Only an explicit false/0 marks a product inactive"""
        return self.active is not False


class WawiOrder(SourceRecord):
    """Completed ``bestellung`` row joined with its supplier"""
    order_id: int
    order_ts: datetime
    arrival_ts: Optional[datetime] = None
    supplier_name: str


class WawiSale(SourceRecord):
    """``verkauf`` row"""
    sale_id: int
    material_id: int
    platform_id: int
    sold_at: datetime
    quantity: int


class TargetPlatform(BaseModel):
    """``dim_platform`` row as currently stored in BI"""
    platform_id: int
    name: str


T = TypeVar("T", bound=SourceRecord)


@dataclass
class SourceBatch(Generic[T]):
    """All valid rows of one source query plus the count of rejected ones"""
    records: List[T] = field(default_factory=list)
    skipped: int = 0

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)
