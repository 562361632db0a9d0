"""Shared enums and helpers for the health analytics models."""
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores datetimes without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MetricType(str, Enum):
    STEPS = "steps"
    SLEEP_HOURS = "sleep_hours"
    HRV = "hrv"
    RHR = "rhr"
    RECOVERY = "recovery"
    WEIGHT = "weight"


class InsightType(str, Enum):
    CONCERN = "concern"
    MILESTONE = "milestone"
    NOTABLE_CHANGE = "notable_change"
    PATTERN = "pattern"


class InsightPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RequirementType(str, Enum):
    STEPS_AVG = "steps_avg"
    SLEEP_AVG = "sleep_avg"
    RECOVERY_AVG = "recovery_avg"
    HRV_AVG = "hrv_avg"
    RHR_AVG = "rhr_avg"


# Wearable payload types the proactive insight pipeline understands
DATA_TYPE_SLEEP = "sleep"
DATA_TYPE_DAILY = "daily"
