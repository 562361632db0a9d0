"""Tests for week-over-week metric trends."""
from datetime import date, timedelta

from healthcoach.analysis.trends import compute_metric_trends
from healthcoach.models.health import DailyMetricRecord

TODAY = date(2025, 3, 14)


def _rows(values_by_offset, field):
    return [
        DailyMetricRecord(user_id="u1", record_date=TODAY - timedelta(days=offset), **{field: value})
        for offset, value in values_by_offset.items()
    ]


class TestComputeMetricTrends:
    def test_no_rows(self):
        assert compute_metric_trends([], TODAY) is None

    def test_rhr_down(self):
        this_week = {i: 55.0 for i in range(7)}
        last_week = {i: 60.0 for i in range(8, 14)}
        trends = compute_metric_trends(_rows({**this_week, **last_week}, "resting_heart_rate"), TODAY)
        rhr = trends["rhr"]
        assert rhr.current == 55
        assert rhr.previous == 60
        assert rhr.change == -5
        assert rhr.trend == "down"

    def test_sleep_keeps_one_decimal(self):
        rows = _rows({0: 480, 1: 450, 9: 420, 10: 420}, "sleep_duration_minutes")
        sleep = compute_metric_trends(rows, TODAY)["sleep"]
        assert sleep.current == 7.8  # mean(8.0, 7.5) = 7.75
        assert sleep.previous == 7.0
        assert sleep.change == 0.8
        assert sleep.trend == "stable"

    def test_no_previous_week_is_stable(self):
        trends = compute_metric_trends(_rows({0: 9000, 2: 11000}, "steps"), TODAY)
        steps = trends["steps"]
        assert steps.current == steps.previous == 10000
        assert steps.change == 0
        assert steps.trend == "stable"

    def test_metric_missing_this_week_omitted(self):
        rows = _rows({0: 8000}, "steps") + _rows({10: 60.0}, "hrv_average")
        trends = compute_metric_trends(rows, TODAY)
        assert "steps" in trends
        assert "hrv" not in trends

    def test_only_last_week_data(self):
        assert compute_metric_trends(_rows({10: 8000}, "steps"), TODAY) is None
