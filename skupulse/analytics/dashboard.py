"""
SKU velocity read model.

Joins the latest metrics_daily rows with product metadata, month-to-date
sales and a 7-day sparkline series, and attaches a trend label.
"""

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skupulse.analytics.trend import classify_trend, month_to_date_windows
from skupulse.database.models import DailyMetric, OrderLineItem, Product
from skupulse.metrics.rollup import SHORT_WINDOW_DAYS

logger = structlog.get_logger(__name__)


class SkuVelocity(BaseModel):
    """One dashboard row"""
    sku: str
    title: Optional[str] = None
    image: Optional[str] = None
    product_url: Optional[str] = None
    retail_price: float = 0.0
    current_stock: int = 0
    avg_daily_30: float = 0.0
    days_of_cover: Optional[float] = None
    mtd: int = 0
    prev_mtd: int = 0
    trend: str = "steady"
    series: List[int] = []


async def resolve_metrics_date(session: AsyncSession, as_of: date) -> Optional[date]:
    """as_of when it has metrics, else the latest day that does, else None"""
    exists = await session.scalar(select(DailyMetric.id).where(DailyMetric.date == as_of).limit(1))
    if exists is not None:
        return as_of
    return await session.scalar(select(func.max(DailyMetric.date)))


def _quantity_between(start: date, end: date):
    return (
        select(OrderLineItem.sku, func.sum(OrderLineItem.quantity).label("qty"))
        .where(
            OrderLineItem.created_at >= datetime.combine(start, time.min),
            OrderLineItem.created_at < datetime.combine(end, time.min),
        )
        .group_by(OrderLineItem.sku)
        .subquery()
    )


async def _recent_series(session: AsyncSession, skus: List[str], as_of: date) -> Dict[str, List[int]]:
    start = as_of - timedelta(days=SHORT_WINDOW_DAYS - 1)
    rows = await session.execute(
        select(DailyMetric.sku, DailyMetric.date, DailyMetric.daily_sales).where(
            DailyMetric.sku.in_(skus),
            DailyMetric.date >= start,
            DailyMetric.date <= as_of,
        )
    )
    by_sku: Dict[str, Dict[date, int]] = defaultdict(dict)
    for sku, day, sales in rows:
        by_sku[sku][day] = int(sales or 0)
    days = [start + timedelta(days=i) for i in range(SHORT_WINDOW_DAYS)]
    return {sku: [by_sku[sku].get(d, 0) for d in days] for sku in skus}


def product_url(store: Optional[str], handle: Optional[str]) -> Optional[str]:
    if not store or not handle:
        return None
    return f"https://{store}/products/{handle}"


async def list_sku_velocity(
    session: AsyncSession,
    as_of: date,
    store: Optional[str] = None,
    limit: int = 200,
) -> List[SkuVelocity]:
    """
    Dashboard rows ordered by month-to-date units sold.

    Args:
        session: Database session
        as_of: Reference date for month-to-date windows and the series
        store: Shop domain used to build storefront product URLs
        limit: Maximum rows returned

    Returns:
        List of SkuVelocity, empty when no metrics have been computed yet
    """
    metrics_date = await resolve_metrics_date(session, as_of)
    if metrics_date is None:
        return []

    (cur_start, cur_end), (prev_start, prev_end) = month_to_date_windows(as_of)
    mtd = _quantity_between(cur_start, cur_end)
    prev = _quantity_between(prev_start, prev_end)

    mtd_qty = func.coalesce(mtd.c.qty, 0).label("mtd")
    prev_qty = func.coalesce(prev.c.qty, 0).label("prev_mtd")

    rows = (await session.execute(
        select(DailyMetric, Product, mtd_qty, prev_qty)
        .join(Product, Product.sku == DailyMetric.sku)
        .outerjoin(mtd, mtd.c.sku == DailyMetric.sku)
        .outerjoin(prev, prev.c.sku == DailyMetric.sku)
        .where(DailyMetric.date == metrics_date)
        .order_by(desc(mtd_qty), DailyMetric.sku)
        .limit(limit)
    )).all()

    series = await _recent_series(session, [r.DailyMetric.sku for r in rows], as_of)

    result = []
    for row in rows:
        metric, product = row.DailyMetric, row.Product
        sku_series = series.get(metric.sku, [0] * SHORT_WINDOW_DAYS)
        avg7 = sum(sku_series) / SHORT_WINDOW_DAYS
        rolling30 = float(metric.rolling30 or 0)
        trend = classify_trend(float(row.mtd), float(row.prev_mtd), avg7, rolling30)
        result.append(SkuVelocity(
            sku=metric.sku,
            title=product.title,
            image=product.image,
            product_url=product_url(store, product.shopify_handle),
            retail_price=float(product.retail_price or 0),
            current_stock=int(metric.current_stock or 0),
            avg_daily_30=rolling30,
            days_of_cover=float(metric.days_of_cover) if metric.days_of_cover is not None else None,
            mtd=int(row.mtd),
            prev_mtd=int(row.prev_mtd),
            trend=trend.value,
            series=sku_series,
        ))

    logger.debug("SKU velocity listed", metrics_date=metrics_date.isoformat(), rows=len(result))
    return result
