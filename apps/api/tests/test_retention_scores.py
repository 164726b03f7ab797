"""
Tests for RSI, RES, LTV and risk-window scoring.
"""
from datetime import date

import pytest

from services.retention_scores import (
    calendar_months_between,
    churn_trend,
    compute_ltv,
    compute_ltve_impact,
    compute_res,
    compute_risk_count,
    compute_rsi,
)


class TestRSI:
    @pytest.mark.parametrize("churn,expected", [
        (0.0, 100),
        (3.0, 100),
        (4.0, 95),
        (5.0, 85),
        (5.01, 85),
        (7.0, 85),
        (7.01, 75),
        (10.5, 60),
    ])
    def test_churn_tiers(self, churn, expected):
        assert compute_rsi(churn, [], 0, 0, 0) == expected

    def test_early_churn_ratio(self):
        # 3 cancels of 20 = 0.15 > 0.10
        assert compute_rsi(0.0, [], 3, 0, 20) == 85
        # 0.06 > 0.05
        assert compute_rsi(0.0, [], 6, 0, 100) == 92

    def test_tenure_bands(self):
        assert compute_rsi(0.0, [12, 14], 0, 0, 0) == 100
        assert compute_rsi(4.0, [12, 14], 0, 0, 0) == 100
        assert compute_rsi(4.0, [6, 7], 0, 0, 0) == 100
        assert compute_rsi(0.0, [1, 2], 0, 0, 0) == 90

    def test_growth_bonus_capped(self):
        assert compute_rsi(0.0, [], 0, 10, 100) == 100
        assert compute_rsi(4.0, [], 0, 10, 100) == 100

    def test_floor_at_zero(self):
        assert compute_rsi(50.0, [0], 50, 0, 60) >= 0


class TestRES:
    def test_top_tiers(self):
        assert compute_res(30000, 200, 150) == 100.0

    def test_floors(self):
        assert compute_res(0, 0, 0) == 20.0

    def test_mid(self):
        assert compute_res(10000, 100, 100) == 30 + 25 + 15


class TestLTV:
    def test_uses_churn_decimal(self):
        assert compute_ltv(150, 5.0) == pytest.approx(3000)

    def test_zero_churn_defaults_to_five_percent(self):
        assert compute_ltv(100, 0.0) == pytest.approx(2000)

    def test_ltve_impact(self):
        # arm 100: 100/0.04 - 100/0.05 = 500 per member-lifetime, x12
        assert compute_ltve_impact(100, 5.0) == pytest.approx(6000)
        assert compute_ltve_impact(100, 1.0) == 0.0
        assert compute_ltve_impact(0, 5.0) == 0.0


class TestRiskWindow:
    def test_calendar_months(self):
        assert calendar_months_between(date(2024, 1, 31), date(2024, 2, 1)) == 1
        assert calendar_months_between(date(2023, 11, 15), date(2024, 2, 29)) == 3

    def test_risk_count_inclusive_of_two_months(self):
        as_of = date(2024, 6, 30)
        joins = [date(2024, 6, 1), date(2024, 4, 30), date(2024, 3, 31)]
        assert compute_risk_count(joins, as_of) == 2


class TestChurnTrend:
    def test_directions(self):
        assert churn_trend([3.0, 4.0, 6.0], delta=1.0) == "rising"
        assert churn_trend([6.0, 4.0, 3.0], delta=1.0) == "improving"
        assert churn_trend([4.0, 4.5], delta=1.0) == "stable"
        assert churn_trend([4.0], delta=1.0) == "stable"
