"""
Rolling baselines: mean / population stddev / min / max per metric over
trailing 7, 14 and 30 day windows.

Windows are anchored at "now", not at the newest row, so a user whose data
stopped arriving ten days ago has an empty 7-day window even though rows
exist. Counts are always the number of real samples in the window; nothing
is padded or interpolated.

Baselines for all six metric types are recomputed together and upserted
keyed by (user, metric type). A single computed_at check on the newest row
decides staleness.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from statistics import mean, pstdev
from typing import Dict, List, Optional, Sequence

from healthcoach.analysis.timeseries import metric_series, round_half_up
from healthcoach.config import Settings, get_settings
from healthcoach.errors import StoreUnavailableError
from healthcoach.models.common import MetricType, utcnow
from healthcoach.models.derived import MetricBaseline
from healthcoach.models.health import DailyMetricRecord

logger = logging.getLogger(__name__)

WINDOW_DAYS = (7, 14, 30)
LOOKBACK_DAYS = 30


@dataclass
class WindowStats:
    """Summary statistics for one window. All None when count is 0."""

    avg: Optional[float]
    stddev: Optional[float]
    min: Optional[float]
    max: Optional[float]
    count: int


def window_stats(values: Sequence[float]) -> WindowStats:
    """
    Mean, population stddev (divides by n, not n-1), min and max, each
    rounded to 2 decimals.
    """
    if not values:
        return WindowStats(avg=None, stddev=None, min=None, max=None, count=0)
    return WindowStats(
        avg=round_half_up(mean(values), 2),
        stddev=round_half_up(pstdev(values), 2),
        min=round_half_up(min(values), 2),
        max=round_half_up(max(values), 2),
        count=len(values),
    )


def compute_metric_baseline(
    rows: Sequence[DailyMetricRecord],
    metric: MetricType,
    user_id: str,
    now: datetime,
) -> MetricBaseline:
    """Baseline row for one metric from already-fetched daily rows."""
    points = metric_series(rows, metric)

    stats: Dict[int, WindowStats] = {}
    for days in WINDOW_DAYS:
        cutoff = now - timedelta(days=days)
        values = [p.value for p in points if datetime.combine(p.day, time.min) >= cutoff]
        stats[days] = window_stats(values)

    s7, s14, s30 = stats[7], stats[14], stats[30]
    return MetricBaseline(
        user_id=user_id,
        metric_type=MetricType(metric).value,
        avg_7day=s7.avg,
        avg_14day=s14.avg,
        avg_30day=s30.avg,
        stddev_7day=s7.stddev,
        stddev_14day=s14.stddev,
        stddev_30day=s30.stddev,
        min_7day=s7.min,
        max_7day=s7.max,
        min_14day=s14.min,
        max_14day=s14.max,
        min_30day=s30.min,
        max_30day=s30.max,
        sample_count_7day=s7.count,
        sample_count_14day=s14.count,
        sample_count_30day=s30.count,
        computed_at=now,
    )


class BaselineComputer:
    """Computes, caches and refreshes per-user metric baselines."""

    def __init__(self, store, settings: Optional[Settings] = None):
        """
        Args:
            store: MetricStore (or AsyncMock in tests).
            settings: defaults to get_settings().
        """
        self.store = store
        self.settings = settings or get_settings()

    async def compute_baselines(
        self, user_id: str, now: Optional[datetime] = None
    ) -> List[MetricBaseline]:
        """
        Compute baselines for every metric type from the last 30 days of rows.

        Returns an empty list only when the fetch fails or there are no rows
        at all; sparse data still yields one (possibly all-null) baseline per
        metric type.
        """
        now = now or utcnow()
        start = (now - timedelta(days=LOOKBACK_DAYS)).date()
        try:
            rows = await self.store.get_rows(user_id, start, ascending=False)
        except StoreUnavailableError as exc:
            logger.error("Could not fetch health data for baselines (user %s): %s", user_id, exc)
            return []

        if not rows:
            return []

        return [compute_metric_baseline(rows, metric, user_id, now) for metric in MetricType]

    async def save_baselines(self, baselines: List[MetricBaseline]) -> bool:
        """Upsert baselines keyed by (user, metric type). Returns success."""
        try:
            await self.store.upsert(baselines, conflict_keys=("user_id", "metric_type"))
        except StoreUnavailableError as exc:
            logger.error("Could not save baselines: %s", exc)
            return False
        return True

    async def get_cached_baselines(self, user_id: str) -> Optional[Dict[MetricType, MetricBaseline]]:
        """Stored baselines keyed by metric type, or None if there are none."""
        try:
            rows = await self.store.get_baselines(user_id)
        except StoreUnavailableError as exc:
            logger.warning("Could not read cached baselines (user %s): %s", user_id, exc)
            return None
        if not rows:
            return None
        return {MetricType(row.metric_type): row for row in rows}

    async def should_recompute(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """True if no baseline exists or the newest one is older than the cooldown."""
        now = now or utcnow()
        try:
            computed_at = await self.store.latest_baseline_computed_at(user_id)
        except StoreUnavailableError as exc:
            logger.warning("Could not check baseline freshness (user %s): %s", user_id, exc)
            return True
        if computed_at is None:
            return True
        return computed_at < now - timedelta(hours=self.settings.recompute_cooldown_hours)

    async def update_if_needed(
        self, user_id: str, now: Optional[datetime] = None, force: bool = False
    ) -> bool:
        """Recompute and save baselines when stale. Returns True if saved."""
        now = now or utcnow()
        if not force and not await self.should_recompute(user_id, now):
            logger.info("Baselines for %s are up to date", user_id)
            return False

        logger.info("Computing baselines for %s", user_id)
        baselines = await self.compute_baselines(user_id, now)
        if not baselines:
            logger.info("No data to compute baselines for %s", user_id)
            return False

        saved = await self.save_baselines(baselines)
        if saved:
            logger.info("Baselines updated for %s", user_id)
        return saved
