"""
Database Module
"""
from .connection import Database
from .models import Base
from .wawi_models import WawiBase

__all__ = [
    "Base",
    "Database",
    "WawiBase",
]
