"""Derived per-user statistics: rolling baselines and detected correlations."""
from datetime import date, datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from healthcoach.models.common import utcnow


class MetricBaseline(SQLModel, table=True):
    """Rolling 7/14/30-day statistics for one metric. Recomputed wholesale."""

    __tablename__ = "metric_baselines"
    __table_args__ = (
        UniqueConstraint("user_id", "metric_type", name="uq_metric_baselines_user_metric"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    metric_type: str

    avg_7day: Optional[float] = None
    avg_14day: Optional[float] = None
    avg_30day: Optional[float] = None
    stddev_7day: Optional[float] = None  # population stddev
    stddev_14day: Optional[float] = None
    stddev_30day: Optional[float] = None
    min_7day: Optional[float] = None
    max_7day: Optional[float] = None
    min_14day: Optional[float] = None
    max_14day: Optional[float] = None
    min_30day: Optional[float] = None
    max_30day: Optional[float] = None
    sample_count_7day: int = 0
    sample_count_14day: int = 0
    sample_count_30day: int = 0

    computed_at: datetime = Field(default_factory=utcnow)


class DetectedPattern(SQLModel, table=True):
    """A significant pairwise correlation between two daily metrics."""

    __tablename__ = "detected_patterns"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "pattern_type", "metric_a", "metric_b", "time_lag_days",
            name="uq_detected_patterns_key",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    pattern_type: str = "correlation"  # "correlation", "trend", "anomaly"
    metric_a: str
    metric_b: Optional[str] = None
    description: str
    correlation_strength: Optional[float] = None  # -1..1
    confidence: float = 0.0  # 0..1
    time_lag_days: int = 0
    direction: Optional[str] = None  # "positive", "negative"
    is_active: bool = True
    last_observed: date
    sample_size: int = 0

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
