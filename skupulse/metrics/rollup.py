"""
Rolling sales metrics for a single SKU.

Pure functions: the caller supplies per-day sales, stock and the reference
date, so every date window is anchored to the same `as_of`.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Mapping, Optional, Sequence

WINDOW_DAYS = 30
SHORT_WINDOW_DAYS = 7
RESTOCK_THRESHOLD_DAYS = 14.0


@dataclass(frozen=True)
class SkuMetrics:
    sku: str
    date: date
    daily_sales: int
    rolling7: float
    rolling30: float
    current_stock: int
    days_of_cover: Optional[float]


def window_start(as_of: date, days: int = WINDOW_DAYS) -> date:
    """First calendar day of a trailing window that ends on as_of"""
    return as_of - timedelta(days=days - 1)


def daily_sales_series(
    by_day: Mapping[date, float],
    as_of: date,
    days: int = WINDOW_DAYS,
) -> list:
    """
    Sales for each of the last `days` calendar days, oldest first.

    Days with no orders contribute 0.
    """
    start = window_start(as_of, days)
    return [float(by_day.get(start + timedelta(days=i), 0) or 0) for i in range(days)]


def rolling_mean(series: Sequence[float], window: int) -> float:
    """Mean of the last `window` elements; a fixed divisor, not the count present"""
    if window <= 0:
        raise ValueError("window must be positive")
    return sum(series[-window:]) / window


def days_of_cover(current_stock: float, rolling30: float) -> Optional[float]:
    """Stock divided by average daily demand; None when there is no demand"""
    if rolling30 <= 0:
        return None
    return current_stock / rolling30


def compute_sku_metrics(
    sku: str,
    by_day: Mapping[date, float],
    current_stock: int,
    as_of: date,
) -> SkuMetrics:
    """Roll up one SKU as of `as_of`"""
    series = daily_sales_series(by_day, as_of, WINDOW_DAYS)
    rolling30 = rolling_mean(series, WINDOW_DAYS)
    return SkuMetrics(
        sku=sku,
        date=as_of,
        daily_sales=int(series[-1]),
        rolling7=rolling_mean(series, SHORT_WINDOW_DAYS),
        rolling30=rolling30,
        current_stock=int(current_stock),
        days_of_cover=days_of_cover(current_stock, rolling30),
    )


def needs_restock(metrics: SkuMetrics, threshold: float = RESTOCK_THRESHOLD_DAYS) -> bool:
    return metrics.days_of_cover is not None and metrics.days_of_cover <= threshold
