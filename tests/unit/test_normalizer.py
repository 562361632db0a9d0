"""Tests for the wearable payload normalizer."""
from datetime import date

import pytest

from healthcoach.ingest.normalizer import (
    daily_record_fields,
    extract_payload_metrics,
    recovery_level,
    resolve_metric_date,
    sleep_efficiency,
    sleep_hours,
)
from healthcoach.models.common import MetricType

SLEEP = {
    "metadata": {
        "start_time": "2025-03-09T22:45:00.000000+00:00",
        "end_time": "2025-03-10T06:50:00.000000+00:00",
    },
    "sleep_durations_data": {
        "asleep": {"duration_asleep_state_seconds": 27000},
        "sleep_efficiency": 91,
    },
}

DAILY = {
    "metadata": {"start_time": "2025-03-10T00:00:00Z", "end_time": "2025-03-10T23:59:59Z"},
    "heart_rate_data": {"summary": {"resting_hr_bpm": 54.6, "avg_hrv_rmssd": 61.4}},
    "distance_data": {"steps": 10432},
    "stress_data": {
        "avg_stress_level": 31.6,
        "body_battery_samples": [{"level": 40}, {"level": 78}],
    },
}


class TestResolveMetricDate:
    def test_sleep_uses_end_time(self):
        assert resolve_metric_date(SLEEP, "sleep") == date(2025, 3, 10)

    def test_daily_uses_start_time(self):
        assert resolve_metric_date(DAILY, "daily") == date(2025, 3, 10)

    def test_falls_back_to_other_timestamp(self):
        payload = {"metadata": {"start_time": "2025-03-09T22:00:00Z"}}
        assert resolve_metric_date(payload, "sleep") == date(2025, 3, 9)

    def test_long_fractional_seconds(self):
        payload = {"metadata": {"start_time": "2025-03-10T00:00:00.1234567"}}
        assert resolve_metric_date(payload, "daily") == date(2025, 3, 10)

    @pytest.mark.parametrize("metadata", [None, {}, {"start_time": ""}, {"start_time": "yesterday"}])
    def test_unparseable(self, metadata):
        assert resolve_metric_date({"metadata": metadata}, "daily") is None


class TestSleepFields:
    def test_hours_one_decimal(self):
        assert sleep_hours(SLEEP) == 7.5

    def test_zero_duration_is_missing(self):
        payload = {"sleep_durations_data": {"asleep": {"duration_asleep_state_seconds": 0}}}
        assert sleep_hours(payload) is None

    def test_efficiency_percent_normalised(self):
        assert sleep_efficiency(SLEEP) == 0.91

    def test_efficiency_fraction_kept(self):
        assert sleep_efficiency({"sleep_durations_data": {"sleep_efficiency": 0.8}}) == 0.8


class TestRecoveryLevel:
    def test_last_body_battery_sample(self):
        assert recovery_level(DAILY) == 78

    def test_vendor_score_fallback(self):
        assert recovery_level({"recovery_data": {"recovery_score": 66}}) == 66

    def test_readiness_fallback(self):
        assert recovery_level({"readiness_data": {"readiness_score": 71}}) == 71

    def test_recovery_score_preferred_over_readiness(self):
        payload = {"recovery_data": {"recovery_score": 66}, "readiness_data": {"readiness_score": 71}}
        assert recovery_level(payload) == 66

    def test_missing(self):
        assert recovery_level({"stress_data": {"body_battery_samples": []}}) is None


class TestExtractPayloadMetrics:
    def test_sleep_item(self):
        assert extract_payload_metrics(SLEEP, "sleep") == {MetricType.SLEEP_HOURS: 7.5}

    def test_daily_item(self):
        assert extract_payload_metrics(DAILY, "daily") == {
            MetricType.RHR: 55,
            MetricType.HRV: 61,
            MetricType.STEPS: 10432,
            MetricType.RECOVERY: 78,
        }

    def test_hrv_fallbacks(self):
        payload = {"hrv_data": {"summary": {"avg_hrv_rmssd": 48.2}}}
        assert extract_payload_metrics(payload, "daily") == {MetricType.HRV: 48}

    def test_zero_and_non_numeric_values_ignored(self):
        payload = {
            "heart_rate_data": {"summary": {"resting_hr_bpm": 0, "avg_hrv_rmssd": "n/a"}},
            "distance_data": {"steps": True},
        }
        assert extract_payload_metrics(payload, "daily") == {}

    def test_other_data_types_ignored(self):
        assert extract_payload_metrics(DAILY, "activity") == {}
        assert extract_payload_metrics(SLEEP, "daily") == {}

    def test_non_dict_payload(self):
        assert extract_payload_metrics(["not", "a", "dict"], "daily") == {}


class TestDailyRecordFields:
    def test_sleep_columns(self):
        assert daily_record_fields(SLEEP, "sleep") == {
            "sleep_duration_minutes": 450,
            "sleep_efficiency": 0.91,
        }

    def test_daily_columns(self):
        assert daily_record_fields(DAILY, "daily") == {
            "resting_heart_rate": 55,
            "hrv_average": 61,
            "steps": 10432,
            "recovery_score": 78,
            "stress_level": 32,
        }

    def test_only_present_columns(self):
        payload = {"distance_data": {"steps": 5000}}
        assert daily_record_fields(payload, "daily") == {"steps": 5000}

    def test_readiness_stored_as_recovery_score(self):
        payload = {"readiness_data": {"readiness_score": 71}}
        assert daily_record_fields(payload, "daily") == {"recovery_score": 71}

    def test_half_bpm_rounds_up(self):
        payload = {"heart_rate_data": {"summary": {"resting_hr_bpm": 54.5}}}
        assert daily_record_fields(payload, "daily") == {"resting_heart_rate": 55}
