"""
Dual comparison of one metric: today vs yesterday and today vs the 7-day baseline.

  pct vs yesterday  → round half up((today − yesterday) / yesterday × 100)
                      direction up / down / same   (±2% deadband)
  pct vs baseline   → same formula against the baseline average
                      direction above / below / at (±5% deadband)

A metric is notable when either change crosses its threshold or today's
value is a milestone. Notable metrics are classified:

  concern        (high)    RHR up ≥10%, HRV down ≥20%, recovery down ≥25% vs yesterday
  milestone      (low)     steps ≥ 10,000 or sleep ≥ 8h
  notable_change (medium)  anything else; low when every comparison moved
                           in the healthy direction
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from healthcoach.analysis.timeseries import round_half_up
from healthcoach.models.common import InsightPriority, InsightType, MetricType

YESTERDAY_DEADBAND_PCT = 2
BASELINE_DEADBAND_PCT = 5

STEPS_MILESTONE = 10000
SLEEP_MILESTONE_HOURS = 8.0

# Metrics where a drop is the healthy direction
LOWER_IS_BETTER = {MetricType.RHR}

_PRIORITY_RANK = {
    InsightPriority.HIGH: 0,
    InsightPriority.MEDIUM: 1,
    InsightPriority.LOW: 2,
}


@dataclass
class MetricComparison:
    metric: MetricType
    today: float
    yesterday: Optional[float] = None
    baseline_7day: Optional[float] = None
    pct_vs_yesterday: Optional[int] = None
    direction_vs_yesterday: Optional[str] = None  # "up", "down", "same"
    pct_vs_baseline: Optional[int] = None
    direction_vs_baseline: Optional[str] = None  # "above", "below", "at"
    insight_type: InsightType = InsightType.NOTABLE_CHANGE
    priority: InsightPriority = InsightPriority.MEDIUM

    @property
    def magnitude(self) -> int:
        return max(abs(self.pct_vs_yesterday or 0), abs(self.pct_vs_baseline or 0))


def percent_change(current: float, previous: Optional[float]) -> Optional[int]:
    """Whole-number percent change, None when there is nothing to compare against."""
    if previous is None or previous == 0:
        return None
    return round_half_up((current - previous) / previous * 100)


def yesterday_direction(pct: Optional[int]) -> Optional[str]:
    if pct is None:
        return None
    if pct > YESTERDAY_DEADBAND_PCT:
        return "up"
    if pct < -YESTERDAY_DEADBAND_PCT:
        return "down"
    return "same"


def baseline_direction(pct: Optional[int]) -> Optional[str]:
    if pct is None:
        return None
    if pct > BASELINE_DEADBAND_PCT:
        return "above"
    if pct < -BASELINE_DEADBAND_PCT:
        return "below"
    return "at"


def is_milestone(metric: MetricType, value: float) -> bool:
    if metric == MetricType.STEPS:
        return value >= STEPS_MILESTONE
    if metric == MetricType.SLEEP_HOURS:
        return value >= SLEEP_MILESTONE_HOURS
    return False


def compare_metric(
    metric: MetricType,
    today: float,
    yesterday: Optional[float],
    baseline_7day: Optional[float],
) -> MetricComparison:
    """Build the comparison and classify it."""
    pct_y = percent_change(today, yesterday)
    pct_b = percent_change(today, baseline_7day)
    comparison = MetricComparison(
        metric=metric,
        today=today,
        yesterday=yesterday,
        baseline_7day=baseline_7day,
        pct_vs_yesterday=pct_y,
        direction_vs_yesterday=yesterday_direction(pct_y),
        pct_vs_baseline=pct_b,
        direction_vs_baseline=baseline_direction(pct_b),
    )
    comparison.insight_type, comparison.priority = classify(comparison)
    return comparison


def is_notable(
    comparison: MetricComparison,
    yesterday_threshold_pct: float = 15,
    baseline_threshold_pct: float = 20,
) -> bool:
    if comparison.pct_vs_yesterday is not None and abs(comparison.pct_vs_yesterday) >= yesterday_threshold_pct:
        return True
    if comparison.pct_vs_baseline is not None and abs(comparison.pct_vs_baseline) >= baseline_threshold_pct:
        return True
    return is_milestone(comparison.metric, comparison.today)


def _is_concern(c: MetricComparison) -> bool:
    pct = c.pct_vs_yesterday
    if pct is None:
        return False
    if c.metric == MetricType.RHR:
        return pct >= 10
    if c.metric == MetricType.HRV:
        return pct <= -20
    if c.metric == MetricType.RECOVERY:
        return pct <= -25
    return False


def _healthy_direction(c: MetricComparison) -> bool:
    """True when every available comparison moved the healthy way."""
    if c.metric in LOWER_IS_BETTER:
        good = {"down", "below"}
    else:
        good = {"up", "above"}
    directions = [d for d in (c.direction_vs_yesterday, c.direction_vs_baseline) if d is not None]
    return bool(directions) and all(d in good for d in directions)


def classify(c: MetricComparison):
    """(insight type, priority) for a comparison."""
    if _is_concern(c):
        return InsightType.CONCERN, InsightPriority.HIGH
    if is_milestone(c.metric, c.today):
        return InsightType.MILESTONE, InsightPriority.LOW
    if _healthy_direction(c):
        return InsightType.NOTABLE_CHANGE, InsightPriority.LOW
    return InsightType.NOTABLE_CHANGE, InsightPriority.MEDIUM


def most_notable(comparisons: Iterable[MetricComparison]) -> Optional[MetricComparison]:
    """Highest priority first, larger percent change breaks ties."""
    ranked = sorted(
        comparisons,
        key=lambda c: (_PRIORITY_RANK[c.priority], -c.magnitude),
    )
    return ranked[0] if ranked else None
