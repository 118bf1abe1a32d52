"""
Metrics rollup against the store.

For every known SKU: daily sales over the trailing 30 days, total stock
across all locations, rolling averages and days of cover, upserted into
metrics_daily for the reference date. Restock alerts go out once the rows
are committed.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skupulse.alerts.notifier import SlackNotifier
from skupulse.database.connection import Database
from skupulse.database.models import DailyMetric, InventoryLevel, OrderLineItem, Product
from skupulse.ingestion.persistence import dialect_insert
from skupulse.metrics.rollup import (
    RESTOCK_THRESHOLD_DAYS,
    WINDOW_DAYS,
    SkuMetrics,
    compute_sku_metrics,
    needs_restock,
    window_start,
)

logger = structlog.get_logger(__name__)


@dataclass
class RollupResult:
    computed: int = 0
    restock: List[SkuMetrics] = field(default_factory=list)
    alerts_sent: int = 0


def as_calendar_date(value) -> date:
    """Normalize a grouped day value; SQLite hands back 'YYYY-MM-DD' strings"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


async def daily_sales_by_day(
    session: AsyncSession,
    sku: str,
    as_of: date,
    days: int = WINDOW_DAYS,
) -> Dict[date, float]:
    """Summed order quantity per calendar day in the trailing window"""
    start = datetime.combine(window_start(as_of, days), time.min)
    end = datetime.combine(as_of + timedelta(days=1), time.min)
    day = func.date(OrderLineItem.created_at).label("day")
    rows = await session.execute(
        select(day, func.sum(OrderLineItem.quantity).label("qty"))
        .where(
            OrderLineItem.sku == sku,
            OrderLineItem.created_at >= start,
            OrderLineItem.created_at < end,
        )
        .group_by(day)
        .order_by(day)
    )
    return {as_calendar_date(r.day): float(r.qty or 0) for r in rows}


async def current_stock(session: AsyncSession, sku: str) -> int:
    """Fresh sum of available units across every location row"""
    total = await session.scalar(
        select(func.coalesce(func.sum(InventoryLevel.available), 0)).where(InventoryLevel.sku == sku)
    )
    return int(total or 0)


async def upsert_daily_metric(session: AsyncSession, metrics: SkuMetrics) -> None:
    stmt = dialect_insert(session, DailyMetric).values(
        sku=metrics.sku,
        date=metrics.date,
        daily_sales=metrics.daily_sales,
        rolling7=metrics.rolling7,
        rolling30=metrics.rolling30,
        current_stock=metrics.current_stock,
        days_of_cover=metrics.days_of_cover,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[DailyMetric.sku, DailyMetric.date],
        set_={
            "daily_sales": stmt.excluded.daily_sales,
            "rolling7": stmt.excluded.rolling7,
            "rolling30": stmt.excluded.rolling30,
            "current_stock": stmt.excluded.current_stock,
            "days_of_cover": stmt.excluded.days_of_cover,
        },
    )
    await session.execute(stmt)


class MetricsRollup:
    """
    Compute and persist one day of metrics for every SKU.

    Example:
        rollup = MetricsRollup(db, notifier)
        result = await rollup.run(as_of=date(2025, 3, 1))
    """

    def __init__(
        self,
        db: Database,
        notifier: Optional[SlackNotifier] = None,
        restock_threshold: float = RESTOCK_THRESHOLD_DAYS,
    ):
        self.db = db
        self.notifier = notifier
        self.restock_threshold = restock_threshold

    async def compute(self, session: AsyncSession, sku: str, as_of: date) -> SkuMetrics:
        by_day = await daily_sales_by_day(session, sku, as_of)
        stock = await current_stock(session, sku)
        metrics = compute_sku_metrics(sku, by_day, stock, as_of)
        await upsert_daily_metric(session, metrics)
        return metrics

    async def run(self, as_of: date) -> RollupResult:
        result = RollupResult()

        async with self.db.session() as session:
            skus = list((await session.scalars(select(Product.sku).order_by(Product.sku))).all())
            for sku in skus:
                metrics = await self.compute(session, sku, as_of)
                result.computed += 1
                if needs_restock(metrics, self.restock_threshold):
                    result.restock.append(metrics)

        logger.info(
            "Metrics computed",
            date=as_of.isoformat(),
            skus=result.computed,
            restock=len(result.restock),
        )

        if self.notifier is not None:
            for metrics in result.restock:
                if await self.notifier.restock_alert(metrics):
                    result.alerts_sent += 1

        return result
