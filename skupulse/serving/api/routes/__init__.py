"""
API Routes Module
"""
from .health import router as health_router
from .etl import router as etl_router
from .skus import router as skus_router

__all__ = [
    "health_router",
    "etl_router",
    "skus_router",
]
