"""
Week-over-week metric trends: average of the last 7 days vs the 7 before.

Feeds the `trends` input of the daily insight rules.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from statistics import mean
from typing import Dict, List, Optional, Sequence

from healthcoach.analysis.timeseries import metric_series, round_half_up
from healthcoach.models.common import MetricType
from healthcoach.models.health import DailyMetricRecord

TREND_BAND = 2  # |change| below this is "stable"

# Trend keys used by the insight rules
_TREND_METRICS = {
    "sleep": MetricType.SLEEP_HOURS,
    "rhr": MetricType.RHR,
    "hrv": MetricType.HRV,
    "steps": MetricType.STEPS,
    "recovery": MetricType.RECOVERY,
}


@dataclass
class MetricTrend:
    current: float
    previous: float
    change: float
    trend: str  # "up", "down", "stable"


def _trend(this_week: List[float], last_week: List[float], precision: int) -> Optional[MetricTrend]:
    if not this_week:
        return None

    def _round(v: float) -> float:
        return round_half_up(v, precision)

    current = _round(mean(this_week))
    previous = _round(mean(last_week)) if last_week else current
    change = _round(current - previous)
    if change >= TREND_BAND:
        direction = "up"
    elif change <= -TREND_BAND:
        direction = "down"
    else:
        direction = "stable"
    return MetricTrend(current=current, previous=previous, change=change, trend=direction)


def compute_metric_trends(
    rows: Sequence[DailyMetricRecord], today: date
) -> Optional[Dict[str, MetricTrend]]:
    """
    Compare this week's averages with last week's.

    Args:
        rows: daily rows covering at least the last 14 days.
        today: reference day; "this week" is the 7 days up to and including it.

    Returns:
        Mapping of trend key ("sleep", "rhr", "hrv", "steps", "recovery") to
        MetricTrend, omitting metrics with no data this week; None if no
        metric has data this week.
    """
    week_start = today - timedelta(days=7)
    prev_start = today - timedelta(days=14)

    trends: Dict[str, MetricTrend] = {}
    for key, metric in _TREND_METRICS.items():
        points = metric_series(rows, metric)
        this_week = [p.value for p in points if week_start <= p.day <= today]
        last_week = [p.value for p in points if prev_start <= p.day < week_start]
        # Sleep hours keep one decimal; everything else is whole units
        trend = _trend(this_week, last_week, precision=1 if metric == MetricType.SLEEP_HOURS else 0)
        if trend is not None:
            trends[key] = trend

    return trends or None
