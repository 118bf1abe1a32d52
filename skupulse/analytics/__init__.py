"""
Analytics Module
"""
from .trend import Trend, classify_trend, month_to_date_windows
from .dashboard import SkuVelocity, list_sku_velocity

__all__ = [
    "Trend",
    "classify_trend",
    "month_to_date_windows",
    "SkuVelocity",
    "list_sku_velocity",
]
