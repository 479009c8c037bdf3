"""
WaWi -> BI Synchronization
Configuration Module
"""
from .settings import (
    BiDatabaseSettings,
    DatabaseSettings,
    Settings,
    WawiDatabaseSettings,
    get_settings,
)

__all__ = [
    "BiDatabaseSettings",
    "DatabaseSettings",
    "Settings",
    "WawiDatabaseSettings",
    "get_settings",
]
