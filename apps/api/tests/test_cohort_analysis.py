"""
Tests for cohort survival analysis.
"""
from datetime import date
from types import SimpleNamespace

import pytest

from services.cohort_analysis import (
    SURVIVAL_DAY_MARKS,
    STANDING_NOTES,
    build_cohorts,
    cohort_alert,
    compute_cohort_intelligence,
)

AS_OF = date(2024, 6, 20)


def _member(join, cancel=None, rate=100):
    return SimpleNamespace(
        join_date=join,
        cancel_date=cancel,
        monthly_rate=rate,
        status="cancelled" if cancel and cancel <= AS_OF else "active",
    )


@pytest.fixture
def roster():
    return [
        _member(date(2024, 1, 5)),
        _member(date(2024, 1, 10), cancel=date(2024, 1, 30)),              # 20 days
        _member(date(2024, 1, 15), cancel=date(2024, 3, 10), rate=200),    # 55 days
        _member(date(2024, 1, 20), cancel=date(2024, 6, 30)),              # cancels after AS_OF
        _member(date(2024, 3, 1), rate=150),
    ]


class TestCohorts:
    def test_buckets_by_join_month(self, roster):
        cohorts = build_cohorts(roster, AS_OF)
        assert [c.cohort_month for c in cohorts] == ["2024-01", "2024-03"]
        jan = cohorts[0]
        assert jan.cohort_label == "Jan 2024"
        assert jan.total_joined == 4
        assert jan.still_active == 2
        assert jan.survival_rate == 50.0
        assert jan.avg_monthly_rate == 125.0
        assert jan.revenue_retained == 200
        assert jan.revenue_lost == 300
        assert jan.avg_tenure_days == 160

    def test_future_cancel_counts_as_active(self, roster):
        cohorts = build_cohorts(roster, AS_OF)
        assert cohorts[1].still_active == 1
        assert cohorts[1].survival_rate == 100.0


class TestRetentionWindows:
    def test_losses_bucketed_by_tenure_at_cancel(self, roster):
        result = compute_cohort_intelligence(roster, AS_OF)
        first = result.window("0-30 days")
        second = result.window("31-60 days")
        assert (first.lost_count, first.lost_pct, first.avg_rate, first.revenue_lost) == (1, 50.0, 100.0, 100)
        assert (second.lost_count, second.lost_pct, second.avg_rate, second.revenue_lost) == (1, 50.0, 200.0, 200)
        assert result.window("365+ days").lost_count == 0
        assert result.window("365+ days").lost_pct == 0.0
        assert len(result.retention_windows) == 6


class TestSurvivalCurve:
    def test_curve_at_day_marks(self, roster):
        curve = compute_cohort_intelligence(roster, AS_OF).survival_curve
        assert [p.days for p in curve] == list(SURVIVAL_DAY_MARKS)
        rates = {p.days: p.survival_rate for p in curve}
        assert rates[0] == 100.0
        assert rates[14] == 100.0
        assert rates[30] == 80.0
        assert rates[60] == 60.0
        assert rates[730] == 60.0

    def test_curve_never_increases(self, roster):
        curve = compute_cohort_intelligence(roster, AS_OF).survival_curve
        assert all(a.survival_rate >= b.survival_rate for a, b in zip(curve, curve[1:]))


class TestInsights:
    def test_early_loss_insights(self, roster):
        result = compute_cohort_intelligence(roster, AS_OF)
        assert result.insights[0] == "100% of all cancellations happen within the first 90 days."
        assert any("before the 90-day mark" in line for line in result.insights)
        assert any("You lose 20% of members" in line for line in result.coaching_insights)

    def test_seasonal_and_standing_notes(self, roster):
        result = compute_cohort_intelligence(roster, AS_OF)
        assert any(line.startswith("Spring") for line in result.coaching_insights)
        assert any(line.startswith("Summer") for line in result.coaching_insights)
        assert result.coaching_insights[-2:] == list(STANDING_NOTES)

    def test_empty_roster(self):
        result = compute_cohort_intelligence([], AS_OF)
        assert result.cohorts == []
        assert result.survival_curve == []
        assert result.insights == []
        assert all(w.lost_count == 0 for w in result.retention_windows)


class TestCohortAlert:
    def test_flags_low_survival_cohort(self, roster):
        alert = cohort_alert(compute_cohort_intelligence(roster, AS_OF))
        assert alert is not None
        assert "Jan 2024" in alert
        assert "50.0%" in alert
        assert "$300/month" in alert

    def test_small_or_healthy_cohorts_not_flagged(self):
        healthy = [_member(date(2024, 2, d)) for d in (1, 2, 3)]
        assert cohort_alert(compute_cohort_intelligence(healthy, AS_OF)) is None
