"""
Database Module
"""
from .connection import Database, open_database
from .models import (
    Base,
    DailyMetric,
    InventoryLevel,
    Location,
    OrderLineItem,
    Product,
    SyncRun,
)

__all__ = [
    "Database",
    "open_database",
    "Base",
    "DailyMetric",
    "InventoryLevel",
    "Location",
    "OrderLineItem",
    "Product",
    "SyncRun",
]
