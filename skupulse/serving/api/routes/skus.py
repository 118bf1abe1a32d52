"""
SKU Velocity Endpoints

Read-only listing of the latest per-SKU metrics for the dashboard.
"""

from datetime import date
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from skupulse.analytics.dashboard import SkuVelocity, list_sku_velocity
from skupulse.config.settings import Settings
from skupulse.serving.api.dependencies import get_app_settings, get_session, get_skus_cache
from skupulse.serving.cache import CacheManager

router = APIRouter()
logger = structlog.get_logger(__name__)


class SkuListResponse(BaseModel):
    """SKU velocity listing"""
    skus: List[SkuVelocity]


@router.get("", response_model=SkuListResponse)
async def list_skus(
    as_of: Optional[date] = Query(default=None, description="Reference day, defaults to today"),
    limit: int = Query(200, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    cache: CacheManager = Depends(get_skus_cache),
) -> SkuListResponse:
    """List SKUs ordered by month-to-date units sold, with trend labels."""
    as_of = as_of or date.today()
    cache_key = f"{as_of.isoformat()}:{limit}"

    async def load() -> dict:
        rows = await list_sku_velocity(session, as_of, store=settings.shopify.store, limit=limit)
        logger.debug("SKU listing loaded", key=cache_key, rows=len(rows))
        return SkuListResponse(skus=rows).model_dump()

    return SkuListResponse(**await cache.get_or_set(cache_key, load))
