"""Raw health data: one row per user per day, plus the vendor payloads it came from."""
from datetime import date, datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from healthcoach.models.common import utcnow


class DailyMetricRecord(SQLModel, table=True):
    """Daily wearable summary. Source of truth for every derived statistic."""

    __tablename__ = "health_daily"
    __table_args__ = (
        UniqueConstraint("user_id", "record_date", name="uq_health_daily_user_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    record_date: date = Field(index=True)

    steps: Optional[int] = None
    sleep_duration_minutes: Optional[float] = None
    hrv_average: Optional[float] = None  # ms, RMSSD
    resting_heart_rate: Optional[float] = None  # bpm
    recovery_score: Optional[float] = None  # 0-100 (body battery / recovery / readiness)
    weight_kg: Optional[float] = None

    sleep_efficiency: Optional[float] = None  # 0-1
    stress_level: Optional[int] = None  # 0-100, lower is calmer

    updated_at: datetime = Field(default_factory=utcnow)


class WearablePayload(SQLModel, table=True):
    """One raw data item delivered by the wearable webhook, kept verbatim."""

    __tablename__ = "wearable_payloads"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    data_type: str = Field(index=True)  # "sleep", "daily", "activity", ...
    metric_date: date = Field(index=True)  # date the data describes, not arrival
    raw_json: str
    received_at: datetime = Field(default_factory=utcnow)
