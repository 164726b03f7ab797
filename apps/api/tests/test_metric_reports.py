"""
Tests for the monthly metric report cards and their 90-day trends.
"""
from types import SimpleNamespace

import pytest

from services.metric_reports import generate_metric_reports, ninety_day_trend


def _row(**overrides):
    values = dict(
        active_members=40, new_members=3, cancels=2, churn_rate=6.0, arm=120.0,
        ltv=2000.0, rsi=72, ltve_impact=500.0, member_risk_count=4,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestNinetyDayTrend:
    def test_no_prior_months(self):
        assert ninety_day_trend(5.0, "churn_rate", [None, None, None]) == ("none", "Insufficient data")

    def test_baseline_is_oldest_available(self):
        prior = [_row(churn_rate=4.0), _row(churn_rate=8.0), None]
        assert ninety_day_trend(6.0, "churn_rate", prior) == ("down", "-25.0%")

    def test_percentage_change(self):
        assert ninety_day_trend(50, "active_members", [_row(active_members=40)]) == ("up", "+25.0%")

    def test_tiny_delta_is_stable(self):
        assert ninety_day_trend(6.005, "churn_rate", [_row(churn_rate=6.0)]) == ("stable", "Stable")

    @pytest.mark.parametrize("current,expected", [
        (3, ("up", "+3 from 0")),
        (-2.5, ("down", "-2.5 from 0")),
    ])
    def test_zero_baseline_reports_absolute_change(self, current, expected):
        assert ninety_day_trend(current, "member_risk_count", [_row(member_risk_count=0)]) == expected


class TestGenerateReports:
    def test_six_reports_in_fixed_order(self):
        reports = generate_metric_reports(_row())
        assert [r.metric for r in reports] == [
            "Monthly Churn",
            "Retention Stability Index",
            "Revenue per Member",
            "Lifetime Value Engine",
            "Member Risk Radar",
            "Net Member Growth",
        ]
        assert all(r.trend_direction == "none" for r in reports)

    def test_churn_impact_above_target(self):
        churn = generate_metric_reports(_row())[0]
        # 120 * 1% * 40 * 12
        assert churn.impact == "+$576 annual revenue if reduced to target"

    def test_rising_churn_and_risk_trend_down(self):
        prior = [_row(churn_rate=4.0, member_risk_count=2)]
        reports = {r.metric: r for r in generate_metric_reports(_row(), prior)}
        assert reports["Monthly Churn"].trend_direction == "down"
        assert reports["Member Risk Radar"].trend_direction == "down"

    def test_risk_radar_from_empty_baseline(self):
        prior = [_row(member_risk_count=0)]
        radar = generate_metric_reports(_row(), prior)[4]
        assert radar.trend_value == "+4 from 0"
        assert radar.trend_direction == "down"
        assert radar.current == "4 flagged (10.0%)"
