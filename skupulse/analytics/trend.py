"""
Sales trend classification.

Computed at read time, never stored. Month-to-date quantity is compared
with the same number of elapsed days in the previous month; without
previous-month sales the short-window average is compared with rolling30.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Tuple

FAST_RATIO = 1.5
SLOW_RATIO = 0.7


class Trend(str, Enum):
    """Sales velocity classification"""
    FAST = "fast"
    SLOW = "slow"
    STEADY = "steady"


def _classify(current: float, baseline: float) -> Trend:
    if current >= FAST_RATIO * baseline:
        return Trend.FAST
    if current <= SLOW_RATIO * baseline:
        return Trend.SLOW
    return Trend.STEADY


def classify_trend(mtd: float, prev_mtd: float, avg7: float, rolling30: float) -> Trend:
    """
    Classify a SKU as fast, slow or steady.

    >>> classify_trend(100, 60, 0, 0).value
    'fast'
    >>> classify_trend(40, 60, 0, 0).value
    'slow'
    """
    if prev_mtd > 0:
        return _classify(mtd, prev_mtd)
    # No previous-month sales: a zero 30-day average counts as 1/day
    baseline = rolling30 if rolling30 else 1.0
    return _classify(avg7, baseline)


def month_to_date_windows(as_of: date) -> Tuple[Tuple[date, date], Tuple[date, date]]:
    """
    Half-open [start, end) day ranges for month-to-date and the matching
    stretch of the previous month.

    The previous window covers the same number of days (as_of.day) but never
    runs past the end of that month.
    """
    current_start = as_of.replace(day=1)
    current_end = as_of + timedelta(days=1)

    previous_start = (current_start - timedelta(days=1)).replace(day=1)
    previous_end = min(previous_start + timedelta(days=as_of.day), current_start)

    return (current_start, current_end), (previous_start, previous_end)
