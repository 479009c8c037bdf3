"""
WaWi -> BI Synchronization

Mirrors warehouse-management (WaWi) data into the BI star schema without
clobbering manually curated BI fields.
"""

__version__ = "1.0.0"
