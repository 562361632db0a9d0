"""Tests for building rule snapshots from daily rows."""
from datetime import date

import pytest

from healthcoach.insights.context import (
    HealthSnapshot,
    sleep_quality,
    snapshot_from_record,
    stress_category,
)
from healthcoach.models.health import DailyMetricRecord


class TestTiers:
    @pytest.mark.parametrize("efficiency,expected", [
        (0.9, "excellent"), (0.85, "excellent"), (0.8, "good"),
        (0.7, "fair"), (0.5, "poor"), (None, "good"),
    ])
    def test_sleep_quality(self, efficiency, expected):
        assert sleep_quality(efficiency) == expected

    @pytest.mark.parametrize("level,expected", [
        (0, "rest"), (25, "rest"), (26, "low"), (50, "low"), (75, "medium"), (76, "high"),
    ])
    def test_stress_category(self, level, expected):
        assert stress_category(level) == expected


class TestSnapshotFromRecord:
    def test_none_record(self):
        assert snapshot_from_record(None) is None

    def test_full_record(self):
        record = DailyMetricRecord(
            user_id="u1",
            record_date=date(2025, 3, 10),
            steps=10500,
            sleep_duration_minutes=465,
            sleep_efficiency=0.88,
            hrv_average=62.0,
            resting_heart_rate=54.0,
            recovery_score=81.0,
            stress_level=20,
        )
        snap = snapshot_from_record(record, recovery_label="Body Battery")
        assert snap.sleep.last_night_hours == 7.8
        assert snap.sleep.quality == "excellent"
        assert snap.recovery.status == "high"
        assert snap.recovery.label == "Body Battery"
        assert snap.stress.category == "rest"
        assert snap.steps == 10500
        assert set(snap.available()) == {"sleep", "rhr", "hrv", "recovery", "steps", "stress"}

    def test_missing_fields_left_out(self):
        record = DailyMetricRecord(user_id="u1", record_date=date(2025, 3, 10), resting_heart_rate=60.0)
        snap = snapshot_from_record(record)
        assert snap.available() == ["rhr"]
        assert snap.recovery_score is None
        assert snap.sleep_hours is None

    def test_empty_snapshot_has_nothing_available(self):
        assert HealthSnapshot().available() == []
