"""Proactive insight: a short coach comment on a notable change in new data."""
from datetime import date, datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from healthcoach.models.common import utcnow


class ProactiveInsight(SQLModel, table=True):
    """At most one row per (user, metric, metric date); refreshed in place."""

    __tablename__ = "proactive_insights"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "metric_type", "metric_date",
            name="uq_proactive_insights_user_metric_date",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    message: str
    insight_type: str  # "concern", "milestone", "notable_change", "pattern"
    priority: str  # "high", "medium", "low"

    # Null for ad-hoc events that are not tied to a single metric/day
    metric_type: Optional[str] = None
    metric_date: Optional[date] = Field(default=None, index=True)
    today_value: Optional[float] = None
    yesterday_value: Optional[float] = None
    baseline_7day: Optional[float] = None
    data_context_json: Optional[str] = None

    read: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
