"""
Wearable payload normalizer.

Reads the Terra-style `sleep` and `daily` data items delivered by the
webhook and turns them into plain values. No DB access here; IngestService
and the proactive insight generator handle persistence.

  sleep item:
    metadata.start_time / end_time                  ISO-8601 strings
    sleep_durations_data.asleep.duration_asleep_state_seconds
    sleep_durations_data.sleep_efficiency           0-1 (or 0-100 from some devices)

  daily item:
    metadata.start_time / end_time
    heart_rate_data.summary.resting_hr_bpm / avg_hrv_rmssd / avg_hrv_sdnn
    distance_data.steps
    stress_data.body_battery_samples[-1].level      recovery proxy
    recovery_data.recovery_score                    recovery fallback
    readiness_data.readiness_score                  recovery fallback (stored as recovery_score)
    stress_data.avg_stress_level

The metric date is the day the data describes: the night's end for sleep,
the day's start for daily summaries.
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from healthcoach.analysis.timeseries import round_half_up
from healthcoach.models.common import DATA_TYPE_DAILY, DATA_TYPE_SLEEP, MetricType


def _dig(payload: Any, *keys) -> Any:
    """Nested dict lookup that returns None at the first missing level."""
    node = payload
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    # fromisoformat before 3.11 does not accept a Z suffix
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        # Some devices send more than 6 fractional digits
        head, _, tail = s.partition(".")
        try:
            return datetime.fromisoformat(head)
        except ValueError:
            return None


def resolve_metric_date(payload: Dict[str, Any], data_type: str) -> Optional[date]:
    """
    Date the payload describes, from its metadata timestamps.

    Sleep prefers end_time (the morning the night ended), daily prefers
    start_time. Either falls back to the other; None when neither parses.
    """
    start = _parse_timestamp(_dig(payload, "metadata", "start_time"))
    end = _parse_timestamp(_dig(payload, "metadata", "end_time"))
    preferred = (end, start) if data_type == DATA_TYPE_SLEEP else (start, end)
    for ts in preferred:
        if ts is not None:
            return ts.date()
    return None


def _positive(value: Any) -> Optional[float]:
    """Numeric value > 0, else None. Wearables report 0 for 'not measured'."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def sleep_hours(payload: Dict[str, Any]) -> Optional[float]:
    seconds = _positive(_dig(payload, "sleep_durations_data", "asleep", "duration_asleep_state_seconds"))
    return round_half_up(seconds / 3600, 1) if seconds else None


def sleep_efficiency(payload: Dict[str, Any]) -> Optional[float]:
    """Efficiency as a 0-1 fraction."""
    value = _positive(_dig(payload, "sleep_durations_data", "sleep_efficiency"))
    if value is None:
        value = _positive(payload.get("sleep_efficiency"))
    if value is None:
        return None
    return value / 100 if value > 1 else value


def recovery_level(payload: Dict[str, Any]) -> Optional[float]:
    """
    Single 0-100 recovery value for the day.

    Latest body-battery sample first, then a vendor recovery score, then a
    vendor readiness score. Readiness has no column of its own; it lands in
    health_daily.recovery_score, which is what recovery proofs average.
    """
    samples = _dig(payload, "stress_data", "body_battery_samples")
    if isinstance(samples, list) and samples:
        level = _positive(_dig(samples[-1], "level"))
        if level is not None:
            return level
    recovery = _positive(_dig(payload, "recovery_data", "recovery_score"))
    if recovery is not None:
        return recovery
    return _positive(_dig(payload, "readiness_data", "readiness_score"))


def extract_payload_metrics(payload: Dict[str, Any], data_type: str) -> Dict[MetricType, float]:
    """
    Comparable metric values present in one payload.

    Only the metrics a data type carries are read: sleep hours from sleep
    items, RHR/HRV/steps/recovery from daily items.
    """
    metrics: Dict[MetricType, float] = {}
    if not isinstance(payload, dict):
        return metrics

    if data_type == DATA_TYPE_SLEEP:
        hours = sleep_hours(payload)
        if hours is not None:
            metrics[MetricType.SLEEP_HOURS] = hours

    elif data_type == DATA_TYPE_DAILY:
        rhr = _positive(_dig(payload, "heart_rate_data", "summary", "resting_hr_bpm"))
        hrv = (
            _positive(_dig(payload, "heart_rate_data", "summary", "avg_hrv_rmssd"))
            or _positive(_dig(payload, "heart_rate_data", "summary", "avg_hrv_sdnn"))
            or _positive(_dig(payload, "hrv_data", "summary", "avg_hrv_rmssd"))
        )
        steps = _positive(_dig(payload, "distance_data", "steps"))
        recovery = recovery_level(payload)

        if rhr is not None:
            metrics[MetricType.RHR] = round_half_up(rhr)
        if hrv is not None:
            metrics[MetricType.HRV] = round_half_up(hrv)
        if steps is not None:
            metrics[MetricType.STEPS] = int(steps)
        if recovery is not None:
            metrics[MetricType.RECOVERY] = recovery

    return metrics


def daily_record_fields(payload: Dict[str, Any], data_type: str) -> Dict[str, Any]:
    """
    health_daily column values carried by one payload.

    Only columns with data are returned, so an upsert never blanks a value
    another data type already filled in.
    """
    metrics = extract_payload_metrics(payload, data_type)
    fields: Dict[str, Any] = {}

    if MetricType.SLEEP_HOURS in metrics:
        seconds = _dig(payload, "sleep_durations_data", "asleep", "duration_asleep_state_seconds")
        fields["sleep_duration_minutes"] = round_half_up(seconds / 60)
        efficiency = sleep_efficiency(payload)
        if efficiency is not None:
            fields["sleep_efficiency"] = efficiency

    if MetricType.RHR in metrics:
        fields["resting_heart_rate"] = metrics[MetricType.RHR]
    if MetricType.HRV in metrics:
        fields["hrv_average"] = metrics[MetricType.HRV]
    if MetricType.STEPS in metrics:
        fields["steps"] = int(metrics[MetricType.STEPS])
    if MetricType.RECOVERY in metrics:
        fields["recovery_score"] = metrics[MetricType.RECOVERY]

    if data_type == DATA_TYPE_DAILY:
        stress = _positive(_dig(payload, "stress_data", "avg_stress_level"))
        if stress is not None:
            fields["stress_level"] = round_half_up(stress)

    return fields
