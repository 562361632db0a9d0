"""
Pairwise correlation detection between daily metrics.

A fixed catalog of metric pairs is tested over the last 30 days of rows.
For each pair we:
  1. Walk the date-sorted rows, pairing row i's metric A with row i+lag's
     metric B, skipping indexes where either value is missing
  2. Compute the Pearson coefficient (None below the sample floor or when
     one side has no variance)
  3. Keep the pair only if |r| >= the significance floor
  4. Score confidence from sample size (capped at 30) and |r|

Kept pairs are upserted keyed by (user, pattern type, metric A, metric B,
lag). After each full run, previously stored correlation patterns that were
not re-detected are marked inactive, so readers only see patterns the
current data still supports.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from healthcoach.analysis.timeseries import METRIC_NAMES, extract_metric_value, round_half_up
from healthcoach.config import Settings, get_settings
from healthcoach.errors import StoreUnavailableError
from healthcoach.models.common import MetricType, utcnow
from healthcoach.models.derived import DetectedPattern
from healthcoach.models.health import DailyMetricRecord

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 30
PATTERN_TYPE = "correlation"
PATTERN_KEY = ("user_id", "pattern_type", "metric_a", "metric_b", "time_lag_days")


@dataclass(frozen=True)
class MetricPair:
    metric_a: MetricType
    metric_b: MetricType
    time_lag: int  # days between A and the B it is paired with
    label: str


METRIC_PAIRS: Tuple[MetricPair, ...] = (
    MetricPair(MetricType.STEPS, MetricType.SLEEP_HOURS, 0, "steps vs same-day sleep"),
    MetricPair(MetricType.STEPS, MetricType.RECOVERY, 1, "steps vs next-day recovery"),
    MetricPair(MetricType.SLEEP_HOURS, MetricType.HRV, 0, "sleep vs same-day HRV"),
    MetricPair(MetricType.SLEEP_HOURS, MetricType.RECOVERY, 0, "sleep vs same-day recovery"),
    MetricPair(MetricType.HRV, MetricType.RECOVERY, 0, "HRV vs same-day recovery"),
    MetricPair(MetricType.RHR, MetricType.SLEEP_HOURS, 0, "resting HR vs same-day sleep"),
    MetricPair(MetricType.WEIGHT, MetricType.STEPS, 0, "weight vs same-day steps"),
)


def pearson_correlation(
    x: Sequence[float], y: Sequence[float], min_samples: int = 7
) -> Optional[float]:
    """
    Pearson r = (nΣxy − ΣxΣy) / sqrt((nΣx² − (Σx)²)(nΣy² − (Σy)²)).

    Returns None for mismatched lengths, fewer than min_samples pairs, or a
    zero denominator. The result is clamped to [-1, 1] against float error.
    """
    if len(x) != len(y) or len(x) < min_samples:
        return None

    n = len(x)
    sum_x = sum(x)
    sum_y = sum(y)
    sum_xy = sum(a * b for a, b in zip(x, y))
    sum_x2 = sum(a * a for a in x)
    sum_y2 = sum(b * b for b in y)

    numerator = n * sum_xy - sum_x * sum_y
    variance_product = (n * sum_x2 - sum_x ** 2) * (n * sum_y2 - sum_y ** 2)
    if variance_product <= 0:
        return None
    return max(-1.0, min(1.0, numerator / math.sqrt(variance_product)))


def calculate_confidence(sample_size: int, correlation: float) -> float:
    """0.6 × min(n/30, 1) + 0.4 × |r|, rounded to 3 decimals."""
    size_confidence = min(sample_size / 30, 1.0)
    strength_confidence = abs(correlation)
    return round_half_up(size_confidence * 0.6 + strength_confidence * 0.4, 3)


def describe_correlation(
    metric_a: MetricType, metric_b: MetricType, correlation: float, time_lag: int
) -> str:
    """Human-readable sentence for a correlation. Deterministic."""
    direction = "positively" if correlation > 0 else "negatively"
    strength = abs(correlation)
    if strength >= 0.7:
        tier = "strongly"
    elif strength >= 0.5:
        tier = "moderately"
    else:
        tier = "weakly"

    a_name = METRIC_NAMES[MetricType(metric_a)]
    b_name = METRIC_NAMES[MetricType(metric_b)]

    if time_lag == 0:
        return f"Your {a_name} {tier} {direction} correlates with {b_name} on the same day"
    if time_lag == 1:
        return f"Your {a_name} {tier} {direction} affects next-day {b_name}"
    return f"Your {a_name} {tier} {direction} correlates with {b_name} {time_lag} days later"


def paired_values(
    rows: Sequence[DailyMetricRecord], pair: MetricPair
) -> Tuple[List[float], List[float]]:
    """Aligned (A, B) arrays from date-ascending rows, offset by the pair's lag."""
    xs: List[float] = []
    ys: List[float] = []
    for i in range(len(rows) - pair.time_lag):
        x = extract_metric_value(rows[i], pair.metric_a)
        y = extract_metric_value(rows[i + pair.time_lag], pair.metric_b)
        if x is not None and y is not None:
            xs.append(float(x))
            ys.append(float(y))
    return xs, ys


class CorrelationEngine:
    """Detects, persists and refreshes per-user correlation patterns."""

    def __init__(self, store, settings: Optional[Settings] = None):
        """
        Args:
            store: MetricStore (or AsyncMock in tests).
            settings: defaults to get_settings().
        """
        self.store = store
        self.settings = settings or get_settings()

    def find_patterns(
        self, rows: Sequence[DailyMetricRecord], user_id: str, now: datetime
    ) -> List[DetectedPattern]:
        """Run the pair catalog over already-fetched rows (any order)."""
        min_samples = self.settings.min_sample_size
        if len(rows) < min_samples:
            logger.info("Insufficient data for pattern detection: %d rows", len(rows))
            return []

        ordered = sorted(rows, key=lambda r: r.record_date)
        patterns = []
        for pair in METRIC_PAIRS:
            xs, ys = paired_values(ordered, pair)
            r = pearson_correlation(xs, ys, min_samples=min_samples)
            if r is None or abs(r) < self.settings.min_correlation:
                continue

            patterns.append(
                DetectedPattern(
                    user_id=user_id,
                    pattern_type=PATTERN_TYPE,
                    metric_a=pair.metric_a.value,
                    metric_b=pair.metric_b.value,
                    description=describe_correlation(pair.metric_a, pair.metric_b, r, pair.time_lag),
                    correlation_strength=round_half_up(r, 3),
                    confidence=calculate_confidence(len(xs), r),
                    time_lag_days=pair.time_lag,
                    direction="positive" if r > 0 else "negative",
                    is_active=True,
                    last_observed=now.date(),
                    sample_size=len(xs),
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.debug("Pattern %s: r=%.3f n=%d", pair.label, r, len(xs))
        return patterns

    async def _detect(self, user_id: str, now: datetime) -> List[DetectedPattern]:
        start = (now - timedelta(days=LOOKBACK_DAYS)).date()
        rows = await self.store.get_rows(user_id, start, ascending=True)
        return self.find_patterns(rows, user_id, now)

    async def detect_patterns(
        self, user_id: str, now: Optional[datetime] = None
    ) -> List[DetectedPattern]:
        """Significant patterns in the last 30 days. Empty on any failure."""
        now = now or utcnow()
        try:
            return await self._detect(user_id, now)
        except StoreUnavailableError as exc:
            logger.error("Could not fetch health data for patterns (user %s): %s", user_id, exc)
            return []

    async def save_patterns(
        self, patterns: List[DetectedPattern], now: Optional[datetime] = None
    ) -> bool:
        """Upsert patterns, replacing the stats of re-detected rows."""
        if not patterns:
            return True
        now = now or utcnow()
        for p in patterns:
            p.updated_at = now
        update_columns = [
            "description", "correlation_strength", "confidence", "direction",
            "is_active", "last_observed", "sample_size", "updated_at",
        ]
        try:
            await self.store.upsert(patterns, conflict_keys=PATTERN_KEY, update_columns=update_columns)
        except StoreUnavailableError as exc:
            logger.error("Could not save patterns: %s", exc)
            return False
        return True

    async def deactivate_stale(
        self, user_id: str, patterns: List[DetectedPattern], now: datetime
    ) -> int:
        """Mark stored correlation patterns not in `patterns` inactive."""
        keys = [(p.pattern_type, p.metric_a, p.metric_b, p.time_lag_days) for p in patterns]
        keep_ids = await self.store.pattern_ids(user_id, keys) if keys else []
        return await self.store.deactivate_patterns(user_id, PATTERN_TYPE, keep_ids, now)

    async def get_active_patterns(self, user_id: str) -> List[DetectedPattern]:
        """Active patterns, most confident first. Empty if unavailable."""
        try:
            return await self.store.get_active_patterns(user_id)
        except StoreUnavailableError as exc:
            logger.warning("Could not read patterns (user %s): %s", user_id, exc)
            return []

    async def should_recompute(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """True if no pattern row exists or the newest is older than the cooldown."""
        now = now or utcnow()
        try:
            updated_at = await self.store.latest_pattern_updated_at(user_id)
        except StoreUnavailableError as exc:
            logger.warning("Could not check pattern freshness (user %s): %s", user_id, exc)
            return True
        if updated_at is None:
            return True
        return updated_at < now - timedelta(hours=self.settings.recompute_cooldown_hours)

    async def detect_patterns_if_needed(
        self, user_id: str, now: Optional[datetime] = None, force: bool = False
    ) -> Optional[List[DetectedPattern]]:
        """
        Detect, save and deactivate stale patterns when the cooldown has passed.

        Returns:
            None if patterns were fresh; otherwise the patterns detected this
            run (possibly empty).
        """
        now = now or utcnow()
        if not force and not await self.should_recompute(user_id, now):
            logger.info("Patterns for %s are up to date", user_id)
            return None

        logger.info("Detecting patterns for %s", user_id)
        try:
            patterns = await self._detect(user_id, now)
        except StoreUnavailableError as exc:
            logger.error("Could not fetch health data for patterns (user %s): %s", user_id, exc)
            return []

        if patterns and not await self.save_patterns(patterns, now):
            return patterns

        try:
            deactivated = await self.deactivate_stale(user_id, patterns, now)
        except StoreUnavailableError as exc:
            logger.warning("Could not deactivate stale patterns (user %s): %s", user_id, exc)
        else:
            if deactivated:
                logger.info("Deactivated %d stale patterns for %s", deactivated, user_id)

        if patterns:
            logger.info("Saved %d patterns for %s", len(patterns), user_id)
        else:
            logger.info("No significant patterns found for %s", user_id)
        return patterns
