"""
Metrics Module

The store-backed rollup lives in skupulse.metrics.service.
"""
from .rollup import SkuMetrics, compute_sku_metrics, days_of_cover, needs_restock

__all__ = [
    "SkuMetrics",
    "compute_sku_metrics",
    "days_of_cover",
    "needs_restock",
]
