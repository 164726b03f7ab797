"""
Tests for six-month revenue scenarios.
"""
from datetime import date
from types import SimpleNamespace

import pytest

from services.revenue_scenario import (
    PROJECTION_MONTHS,
    classify_cash_flow_risk,
    compute_revenue_scenario,
)


def _month(month_start, active, churn, new, arm=150.0):
    return SimpleNamespace(
        month_start=month_start,
        active_members=active,
        churn_rate=churn,
        new_members=new,
        mrr=active * arm,
    )


def _history(churns, news, active=100):
    starts = [date(2024, 4, 1), date(2024, 5, 1), date(2024, 6, 1)]
    return [_month(s, active, c, n) for s, c, n in zip(starts, churns, news)]


class TestScenarioShape:
    def test_seven_points_starting_at_current_mrr(self):
        scenario = compute_revenue_scenario(_history([4, 6, 8], [5, 3, 4]), 100, 150)
        assert len(scenario.projections) == PROJECTION_MONTHS + 1
        first = scenario.projections[0]
        assert first.month == "2024-06-01"
        assert first.current == first.expected == first.upside == first.downside == 15000
        assert [p.month for p in scenario.projections][-1] == "2024-12-01"

    def test_paths_stay_ordered(self):
        scenario = compute_revenue_scenario(_history([4, 6, 8], [5, 3, 4]), 100, 150)
        for point in scenario.projections:
            assert point.downside <= point.expected <= point.upside

    def test_summary_fields_match_final_month(self):
        scenario = compute_revenue_scenario(_history([4, 6, 8], [5, 3, 4]), 100, 150)
        final = scenario.projections[-1]
        assert scenario.expected_mrr == final.expected
        assert scenario.worst_case_mrr == final.downside
        assert scenario.upside_mrr == final.upside


class TestWithoutHistory:
    def test_flat_projection_from_roster(self):
        scenario = compute_revenue_scenario([], 100, 150, as_of=date(2024, 6, 20))
        assert scenario.projections[0].month == "2024-06-01"
        assert all(p.expected == 15000 for p in scenario.projections)
        assert scenario.cash_flow_risk_level == "low"
        assert scenario.break_even_risk == 0.05
        assert "stable" in scenario.scenario_insights[0]

    def test_empty_gym_has_no_revenue_insight(self):
        scenario = compute_revenue_scenario([], 0, 0, as_of=date(2024, 6, 20))
        assert scenario.cash_flow_risk_level == "low"
        assert scenario.scenario_insights == [
            "No recurring revenue recorded yet; import members to project revenue."
        ]


class TestCashFlowRisk:
    def test_collapsing_gym_is_critical(self):
        scenario = compute_revenue_scenario(_history([20, 25, 30], [0, 0, 0]), 100, 150)
        assert scenario.cash_flow_risk_level == "critical"
        assert scenario.break_even_risk == 0.7
        assert scenario.expected_mrr < 15000
        assert any("shrinks" in line for line in scenario.scenario_insights)

    @pytest.mark.parametrize(
        "expected,downside,level,risk",
        [
            (10000, 5000, "critical", 0.7),
            (10000, 7000, "high", 0.3),
            (10000, 9000, "moderate", 0.15),
            (9000, 9600, "moderate", 0.15),
            (10500, 9800, "low", 0.05),
        ],
    )
    def test_levels(self, expected, downside, level, risk):
        assert classify_cash_flow_risk(10000, expected, downside) == (risk, level)

    def test_zero_mrr_is_low(self):
        assert classify_cash_flow_risk(0, 0, 0) == (0.05, "low")
