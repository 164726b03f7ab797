"""
Tests for the monthly metrics engine.
"""
from datetime import date, timedelta
from types import SimpleNamespace

from models import GymMonthlyMetrics
from services.csv_import import compute_file_hash
from services.gym_metrics import (
    add_months,
    compute_monthly_metrics,
    get_metrics_history,
    is_active_as_of,
    last_of_month,
    recompute_all_metrics,
    risk_window_members,
    summarize_month,
)
from services.member_import import commit_import


def _m(join, cancel=None, rate=100, status=None):
    return SimpleNamespace(
        join_date=join,
        cancel_date=cancel,
        monthly_rate=rate,
        status=status or ("cancelled" if cancel else "active"),
    )


class TestCalendar:
    def test_add_months_crosses_years(self):
        assert add_months(date(2024, 11, 1), 3) == date(2025, 2, 1)
        assert add_months(date(2024, 1, 1), -1) == date(2023, 12, 1)

    def test_last_of_month_leap_year(self):
        assert last_of_month(date(2024, 2, 10)) == date(2024, 2, 29)


class TestIsActive:
    def test_cancel_date_is_exclusive(self):
        member = _m(date(2024, 1, 1), cancel=date(2024, 3, 15))
        assert is_active_as_of(member, date(2024, 3, 14))
        assert not is_active_as_of(member, date(2024, 3, 15))

    def test_future_join_not_active(self):
        assert not is_active_as_of(_m(date(2024, 5, 2)), date(2024, 5, 1))

    def test_cancelled_without_date_excluded(self):
        assert not is_active_as_of(_m(date(2023, 1, 1), status="cancelled"), date(2024, 1, 1))


class TestSummarizeMonth:
    def test_counts_and_churn(self):
        members = [
            _m(date(2023, 1, 10), rate=100),
            _m(date(2023, 2, 10), rate=100),
            _m(date(2023, 3, 10), cancel=date(2024, 4, 5), rate=80),
            _m(date(2023, 4, 10), cancel=date(2024, 4, 30), rate=80),
            _m(date(2024, 4, 12), rate=150),
        ]
        snap = summarize_month(members, date(2024, 4, 1))

        assert snap.active_start_of_month == 4
        assert snap.active_members == 3
        assert snap.new_members == 1
        assert snap.cancels == 2
        assert snap.churn_rate == 50.0
        assert snap.mrr == 350.0
        assert snap.arm == round(350 / 3, 2)
        assert snap.member_risk_count == 1
        assert snap.rolling_churn_3m is None

    def test_rolling_churn_uses_prior_months(self):
        snap = summarize_month([_m(date(2023, 1, 1))], date(2024, 4, 1), prior_churn_rates=(3.0, 6.0))
        assert snap.rolling_churn_3m == 3.0

    def test_empty_gym(self):
        snap = summarize_month([], date(2024, 4, 1))
        assert snap.active_members == 0
        assert snap.churn_rate == 0.0
        assert snap.arm == 0.0


class TestPersistence:
    def test_compute_is_idempotent(self, db_session, gym, add_member):
        add_member("A", date(2024, 1, 5), rate=120)
        add_member("B", date(2024, 2, 5), rate=80, cancel_date=date(2024, 3, 20))

        first = compute_monthly_metrics(db_session, gym.id, date(2024, 3, 1))
        first_values = (first.active_members, first.cancels, float(first.churn_rate), float(first.mrr), first.rsi)
        second = compute_monthly_metrics(db_session, gym.id, date(2024, 3, 15))
        second_values = (second.active_members, second.cancels, float(second.churn_rate), float(second.mrr), second.rsi)

        assert first_values == second_values
        rows = db_session.query(GymMonthlyMetrics).filter(GymMonthlyMetrics.gym_id == gym.id).all()
        assert len(rows) == 1
        assert rows[0].month_start == date(2024, 3, 1)

    def test_recompute_all_covers_full_history(self, db_session, gym, add_member):
        add_member("A", date(2024, 1, 5))
        add_member("B", date(2024, 2, 5), cancel_date=date(2024, 4, 2))

        months = recompute_all_metrics(db_session, gym.id, today=date(2024, 6, 10))
        assert months == 6

        history = get_metrics_history(db_session, gym.id)
        assert [h.month_start for h in history] == [date(2024, m, 1) for m in range(1, 7)]
        april = history[3]
        assert april.cancels == 1
        assert float(april.churn_rate) == 50.0
        # Jan and Feb exist before March is computed
        assert history[2].rolling_churn_3m is not None
        assert history[0].rolling_churn_3m is None

    def test_recompute_empty_gym(self, db_session, gym):
        assert recompute_all_metrics(db_session, gym.id, today=date(2024, 6, 10)) == 0

    def test_risk_window_members(self, db_session, gym, add_member):
        add_member("New", date(2024, 5, 20))
        add_member("Old", date(2023, 1, 1))
        names = [m.name for m in risk_window_members(db_session, gym.id, date(2024, 6, 1))]
        assert names == ["New"]


class TestEndToEnd:
    def test_three_member_import(self, db_session, gym, as_of):
        joined_new = as_of - timedelta(days=10)
        joined_cancelled = as_of - timedelta(days=200)
        cancelled_on = as_of - timedelta(days=30)
        joined_veteran = as_of - timedelta(days=400)
        csv_text = (
            "name,email,status,join_date,cancel_date,monthly_rate\n"
            f"Nia,nia@example.com,active,{joined_new.isoformat()},,150\n"
            f"Cal,cal@example.com,cancelled,{joined_cancelled.isoformat()},{cancelled_on.isoformat()},100\n"
            f"Vic,vic@example.com,active,{joined_veteran.isoformat()},,200\n"
        )
        mapping = {"name": 0, "email": 1, "status": 2, "join_date": 3, "cancel_date": 4, "monthly_rate": 5}
        result = commit_import(db_session, gym.id, csv_text, mapping, compute_file_hash(csv_text))
        assert result.imported == 3

        metrics = compute_monthly_metrics(db_session, gym.id, as_of)

        assert metrics.month_start == date(2024, 6, 1)
        assert metrics.active_members == 2
        # Cancel on 2024-05-21 falls in May's [month_start, month_end] window.
        assert metrics.cancels == 0
        assert metrics.new_members == 1
        assert float(metrics.mrr) == 350.0
        assert float(metrics.arm) == 175.0
