"""
Reporting Module
"""
from .queries import (
    bestsellers,
    product_summary,
    sales_summary_by_platform,
    shipping_summary_by_supplier,
)

__all__ = [
    "bestsellers",
    "product_summary",
    "sales_summary_by_platform",
    "shipping_summary_by_supplier",
]
