"""
Today's health snapshot: the `metrics` input to the insight and check-in rules.

Built from a DailyMetricRecord, or directly by callers that already hold
provider data. Every part is optional; rules treat a missing part as
"not applicable".
"""
from dataclasses import dataclass
from typing import List, Optional

from healthcoach.analysis.timeseries import extract_metric_value, round_half_up
from healthcoach.models.common import MetricType
from healthcoach.models.health import DailyMetricRecord


@dataclass
class SleepSnapshot:
    last_night_hours: float
    quality: str  # "poor", "fair", "good", "excellent"


@dataclass
class RecoverySnapshot:
    score: float
    status: str  # "low", "moderate", "high"
    label: str = "Recovery"  # "Body Battery", "Readiness", ... per provider


@dataclass
class StressSnapshot:
    level: int  # 0-100, lower is calmer
    category: str  # "rest", "low", "medium", "high"


@dataclass
class HealthSnapshot:
    sleep: Optional[SleepSnapshot] = None
    rhr: Optional[float] = None
    hrv: Optional[float] = None
    recovery: Optional[RecoverySnapshot] = None
    steps: Optional[int] = None
    stress: Optional[StressSnapshot] = None

    def available(self) -> List[str]:
        """Names of the parts that have data."""
        return [name for name, value in vars(self).items() if value is not None]

    # Flat accessors used by rule conditions
    @property
    def recovery_score(self) -> Optional[float]:
        return self.recovery.score if self.recovery else None

    @property
    def sleep_hours(self) -> Optional[float]:
        return self.sleep.last_night_hours if self.sleep else None

    @property
    def stress_category(self) -> Optional[str]:
        return self.stress.category if self.stress else None


def sleep_quality(efficiency: Optional[float]) -> str:
    """Quality tier from sleep efficiency (0-1). Unknown efficiency reads as good."""
    if efficiency is None:
        return "good"
    if efficiency >= 0.85:
        return "excellent"
    if efficiency >= 0.75:
        return "good"
    if efficiency >= 0.65:
        return "fair"
    return "poor"


def recovery_status(score: float) -> str:
    if score >= 67:
        return "high"
    if score >= 34:
        return "moderate"
    return "low"


def stress_category(level: int) -> str:
    if level <= 25:
        return "rest"
    if level <= 50:
        return "low"
    if level <= 75:
        return "medium"
    return "high"


def snapshot_from_record(
    record: Optional[DailyMetricRecord], recovery_label: str = "Recovery"
) -> Optional[HealthSnapshot]:
    """Snapshot of one daily row, or None when there is no row."""
    if record is None:
        return None

    snapshot = HealthSnapshot()
    hours = extract_metric_value(record, MetricType.SLEEP_HOURS)
    if hours is not None:
        snapshot.sleep = SleepSnapshot(
            last_night_hours=round_half_up(hours, 1),
            quality=sleep_quality(record.sleep_efficiency),
        )
    if record.resting_heart_rate is not None:
        snapshot.rhr = record.resting_heart_rate
    if record.hrv_average is not None:
        snapshot.hrv = record.hrv_average
    if record.recovery_score is not None:
        snapshot.recovery = RecoverySnapshot(
            score=record.recovery_score,
            status=recovery_status(record.recovery_score),
            label=recovery_label,
        )
    if record.steps is not None:
        snapshot.steps = record.steps
    if record.stress_level is not None:
        snapshot.stress = StressSnapshot(
            level=record.stress_level, category=stress_category(record.stress_level)
        )
    return snapshot
