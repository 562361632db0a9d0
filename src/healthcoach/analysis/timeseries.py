"""
MetricPoint dataclass and per-metric extraction from daily rows.

MetricPoint is the in-memory representation used by the analysis modules:
one (date, value) pair for one metric. Analysis functions take lists of
DailyMetricRecord (or MetricPoint) and return plain results; persistence is
the caller's job.
"""
import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from healthcoach.models.common import MetricType
from healthcoach.models.health import DailyMetricRecord

METRIC_NAMES = {
    MetricType.STEPS: "steps",
    MetricType.SLEEP_HOURS: "sleep duration",
    MetricType.HRV: "HRV",
    MetricType.RHR: "resting heart rate",
    MetricType.RECOVERY: "recovery score",
    MetricType.WEIGHT: "weight",
}


@dataclass
class MetricPoint:
    """One day's value of one metric."""

    day: date
    value: float


def extract_metric_value(row: DailyMetricRecord, metric: MetricType) -> Optional[float]:
    """
    Read one metric from a daily row.

    Sleep is stored in minutes and reported in hours. A zero sleep duration
    means the wearable recorded no sleep, so it counts as missing.
    """
    metric = MetricType(metric)
    if metric == MetricType.STEPS:
        return row.steps
    if metric == MetricType.SLEEP_HOURS:
        return row.sleep_duration_minutes / 60 if row.sleep_duration_minutes else None
    if metric == MetricType.HRV:
        return row.hrv_average
    if metric == MetricType.RHR:
        return row.resting_heart_rate
    if metric == MetricType.RECOVERY:
        return row.recovery_score
    if metric == MetricType.WEIGHT:
        return row.weight_kg
    return None


def metric_series(rows: Iterable[DailyMetricRecord], metric: MetricType) -> List[MetricPoint]:
    """Non-null values of one metric, in row order."""
    points = []
    for row in rows:
        value = extract_metric_value(row, metric)
        if value is not None:
            points.append(MetricPoint(day=row.record_date, value=float(value)))
    return points


def round_half_up(value: float, digits: int = 0):
    """
    Round to `digits` decimals with exact halves going up: 2.5 → 3,
    12.5 → 13, -2.5 → -2. Built-in round() sends halves to the even
    neighbour, which would turn a 2.5% change into 2%.

    Returns an int when digits is 0.
    """
    scale = 10 ** digits
    rounded = math.floor(value * scale + 0.5)
    if digits == 0:
        return int(rounded)
    return rounded / scale
