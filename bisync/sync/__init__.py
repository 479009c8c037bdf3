"""
WaWi -> BI Synchronization Module
"""
from .reconciler import MappedPlatform, PlatformIdMap, UnmappedPlatform
from .service import (
    StepResult,
    StepStatus,
    SyncResult,
    SyncStatus,
    SyncStep,
    WawiBiSync,
)
from .source import WawiSource
from .target import BiTarget

__all__ = [
    "BiTarget",
    "MappedPlatform",
    "PlatformIdMap",
    "StepResult",
    "StepStatus",
    "SyncResult",
    "SyncStatus",
    "SyncStep",
    "UnmappedPlatform",
    "WawiBiSync",
    "WawiSource",
]
