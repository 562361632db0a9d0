"""Tests for today-vs-yesterday and today-vs-baseline comparisons."""
import pytest

from healthcoach.insights.comparison import (
    baseline_direction,
    compare_metric,
    is_milestone,
    is_notable,
    most_notable,
    percent_change,
    yesterday_direction,
)
from healthcoach.models.common import InsightPriority, InsightType, MetricType


class TestPercentChange:
    def test_rounds_to_whole_percent(self):
        assert percent_change(8500, 7000) == 21
        assert percent_change(52, 55) == -5

    def test_exact_halves_round_up(self):
        assert percent_change(41, 40) == 3  # 2.5%
        assert percent_change(22.5, 20) == 13  # 12.5%
        assert percent_change(39, 40) == -2  # -2.5%

    def test_missing_or_zero_previous(self):
        assert percent_change(10, None) is None
        assert percent_change(10, 0) is None


class TestDirections:
    @pytest.mark.parametrize("pct,expected", [
        (1, "same"), (2, "same"), (3, "up"), (-2, "same"), (-3, "down"), (None, None),
    ])
    def test_yesterday_deadband(self, pct, expected):
        assert yesterday_direction(pct) == expected

    @pytest.mark.parametrize("pct,expected", [
        (3, "at"), (5, "at"), (6, "above"), (-5, "at"), (-6, "below"), (None, None),
    ])
    def test_baseline_deadband(self, pct, expected):
        assert baseline_direction(pct) == expected

    def test_half_percent_change_leaves_the_deadband(self):
        c = compare_metric(MetricType.HRV, 41, 40, None)
        assert c.pct_vs_yesterday == 3
        assert c.direction_vs_yesterday == "up"

    def test_negative_half_percent_stays_inside_the_deadband(self):
        assert compare_metric(MetricType.HRV, 39, 40, None).direction_vs_yesterday == "same"


class TestMilestones:
    def test_steps(self):
        assert is_milestone(MetricType.STEPS, 10000)
        assert not is_milestone(MetricType.STEPS, 9999)

    def test_sleep(self):
        assert is_milestone(MetricType.SLEEP_HOURS, 8.0)
        assert not is_milestone(MetricType.SLEEP_HOURS, 7.9)

    def test_other_metrics_never_milestones(self):
        assert not is_milestone(MetricType.HRV, 200)


class TestNotability:
    def test_yesterday_threshold(self):
        assert is_notable(compare_metric(MetricType.HRV, 46, 40, None))  # +15%
        assert not is_notable(compare_metric(MetricType.HRV, 45, 40, None))  # +13%

    def test_baseline_threshold(self):
        assert is_notable(compare_metric(MetricType.HRV, 60, None, 50))  # +20%
        assert not is_notable(compare_metric(MetricType.HRV, 59, None, 50))  # +18%

    def test_milestone_is_notable_without_history(self):
        assert is_notable(compare_metric(MetricType.STEPS, 12000, None, None))

    def test_no_history_not_notable(self):
        assert not is_notable(compare_metric(MetricType.RHR, 70, None, None))

    def test_custom_thresholds(self):
        c = compare_metric(MetricType.HRV, 44, 40, None)  # +10%
        assert not is_notable(c)
        assert is_notable(c, yesterday_threshold_pct=10)


class TestClassification:
    def test_rhr_spike_is_concern(self):
        c = compare_metric(MetricType.RHR, 66, 60, 60)
        assert c.insight_type == InsightType.CONCERN
        assert c.priority == InsightPriority.HIGH

    def test_hrv_drop_is_concern(self):
        c = compare_metric(MetricType.HRV, 40, 50, None)
        assert c.insight_type == InsightType.CONCERN

    def test_recovery_drop_is_concern(self):
        c = compare_metric(MetricType.RECOVERY, 60, 80, None)
        assert c.pct_vs_yesterday == -25
        assert c.insight_type == InsightType.CONCERN

    def test_step_milestone_low_priority(self):
        c = compare_metric(MetricType.STEPS, 10500, 6000, 7000)
        assert c.insight_type == InsightType.MILESTONE
        assert c.priority == InsightPriority.LOW

    def test_healthy_change_is_low_priority(self):
        c = compare_metric(MetricType.HRV, 70, 55, 55)
        assert c.insight_type == InsightType.NOTABLE_CHANGE
        assert c.priority == InsightPriority.LOW

    def test_rhr_drop_is_healthy(self):
        c = compare_metric(MetricType.RHR, 50, 60, 60)
        assert c.direction_vs_yesterday == "down"
        assert c.priority == InsightPriority.LOW

    def test_mixed_directions_medium(self):
        c = compare_metric(MetricType.STEPS, 6000, 5000, 9000)
        assert c.direction_vs_yesterday == "up"
        assert c.direction_vs_baseline == "below"
        assert c.priority == InsightPriority.MEDIUM

    def test_unhealthy_change_medium(self):
        c = compare_metric(MetricType.SLEEP_HOURS, 5.0, 7.5, 7.4)
        assert c.insight_type == InsightType.NOTABLE_CHANGE
        assert c.priority == InsightPriority.MEDIUM


class TestMostNotable:
    def test_priority_beats_magnitude(self):
        concern = compare_metric(MetricType.RHR, 66, 60, None)  # +10%, high
        big = compare_metric(MetricType.STEPS, 4000, 9000, None)  # -56%, medium
        assert most_notable([big, concern]) is concern

    def test_magnitude_breaks_ties(self):
        small = compare_metric(MetricType.SLEEP_HOURS, 6.0, 7.5, None)  # -20%
        large = compare_metric(MetricType.STEPS, 3000, 9000, None)  # -67%
        assert most_notable([small, large]) is large

    def test_empty(self):
        assert most_notable([]) is None
