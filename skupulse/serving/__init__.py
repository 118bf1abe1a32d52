"""
Serving Module
"""
from .cache import CacheManager, init_redis

__all__ = [
    "CacheManager",
    "init_redis",
]
