"""
Gym Metrics Engine

Monthly aggregate snapshot per (gym, month_start):

    active_members       active as of the last day of the month
    active_start_of_month active as of the day before month_start
    new_members          join_date within [month_start, month_end]
    cancels              cancel_date within [month_start, month_end]
    churn_rate           cancels / active_start_of_month * 100 (2 dp)
    mrr, arm, ltv, rsi, res, ltve_impact, member_risk_count
    rolling_churn_3m     only when both prior months are already stored

"Active as of D" means join_date <= D and (no cancel_date or cancel_date > D).
A member marked cancelled without a cancel date cannot be placed in time and
is left out of every count.

Snapshots are written with INSERT ... ON CONFLICT DO UPDATE on
(gym_id, month_start), so recomputation is idempotent and two concurrent
rebuilds cannot produce duplicate rows.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from core.database import dialect_name
from core.scoring_config import SCORING_CONFIG
from models import GymMonthlyMetrics, Member
from services.retention_scores import (
    calendar_months_between,
    compute_ltv,
    compute_ltve_impact,
    compute_res,
    compute_risk_count,
    compute_rsi,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def first_of_month(d: date) -> date:
    return d.replace(day=1)


def add_months(d: date, months: int) -> date:
    """First day of the month `months` away from d's month."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def last_of_month(d: date) -> date:
    return add_months(d, 1) - timedelta(days=1)


# ---------------------------------------------------------------------------
# Snapshot computation
# ---------------------------------------------------------------------------

@dataclass
class MonthlySnapshot:
    month_start: date
    active_members: int
    active_start_of_month: int
    new_members: int
    cancels: int
    churn_rate: float
    rolling_churn_3m: Optional[float]
    mrr: float
    arm: float
    ltv: float
    rsi: int
    res: float
    ltve_impact: float
    member_risk_count: int

    def to_dict(self) -> dict:
        return asdict(self)


def is_active_as_of(member, as_of: date) -> bool:
    if member.join_date > as_of:
        return False
    if member.cancel_date is None:
        return member.status != "cancelled"
    return member.cancel_date > as_of


def summarize_month(
    members: Sequence,
    month_start: date,
    prior_churn_rates: Optional[Tuple[float, float]] = None,
) -> MonthlySnapshot:
    """
    Pure computation over member-like objects (join_date, cancel_date,
    status, monthly_rate). prior_churn_rates holds the stored churn of the
    two previous months, or None if either is missing.
    """
    month_start = first_of_month(month_start)
    month_end = last_of_month(month_start)
    day_before = month_start - timedelta(days=1)

    active = [m for m in members if is_active_as_of(m, month_end)]
    active_start = sum(1 for m in members if is_active_as_of(m, day_before))
    new_count = sum(1 for m in members if month_start <= m.join_date <= month_end)
    cancel_count = sum(
        1 for m in members
        if m.cancel_date is not None and month_start <= m.cancel_date <= month_end
    )

    churn_rate = round(cancel_count / active_start * 100, 2) if active_start > 0 else 0.0
    mrr = sum(float(m.monthly_rate or 0) for m in active)
    arm = mrr / len(active) if active else 0.0
    ltv = compute_ltv(arm, churn_rate)

    rolling = None
    if prior_churn_rates is not None:
        rolling = round((prior_churn_rates[0] + prior_churn_rates[1] + churn_rate) / 3, 2)

    tenure_months = [calendar_months_between(m.join_date, month_end) for m in active]

    return MonthlySnapshot(
        month_start=month_start,
        active_members=len(active),
        active_start_of_month=active_start,
        new_members=new_count,
        cancels=cancel_count,
        churn_rate=churn_rate,
        rolling_churn_3m=rolling,
        mrr=round(mrr, 2),
        arm=round(arm, 2),
        ltv=round(ltv, 2),
        rsi=compute_rsi(churn_rate, tenure_months, cancel_count, new_count, active_start),
        res=round(compute_res(mrr, len(active), arm), 1),
        ltve_impact=round(compute_ltve_impact(arm, churn_rate), 2),
        member_risk_count=compute_risk_count((m.join_date for m in active), month_end),
    )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def _gym_members(db: Session, gym_id: UUID) -> List[Member]:
    return db.query(Member).filter(Member.gym_id == gym_id).all()


def get_month_metrics(db: Session, gym_id: UUID, month_start: date) -> Optional[GymMonthlyMetrics]:
    return (
        db.query(GymMonthlyMetrics)
        .filter(GymMonthlyMetrics.gym_id == gym_id, GymMonthlyMetrics.month_start == month_start)
        .execution_options(populate_existing=True)
        .first()
    )


def get_metrics_history(db: Session, gym_id: UUID) -> List[GymMonthlyMetrics]:
    return (
        db.query(GymMonthlyMetrics)
        .filter(GymMonthlyMetrics.gym_id == gym_id)
        .order_by(GymMonthlyMetrics.month_start.asc())
        .execution_options(populate_existing=True)
        .all()
    )


def _prior_churn_rates(db: Session, gym_id: UUID, month_start: date) -> Optional[Tuple[float, float]]:
    prev1 = get_month_metrics(db, gym_id, add_months(month_start, -1))
    prev2 = get_month_metrics(db, gym_id, add_months(month_start, -2))
    if prev1 is None or prev2 is None:
        return None
    return float(prev2.churn_rate), float(prev1.churn_rate)


def upsert_monthly_metrics(db: Session, gym_id: UUID, snapshot: MonthlySnapshot) -> GymMonthlyMetrics:
    values = snapshot.to_dict()
    values.pop("month_start")

    insert = pg_insert if dialect_name(db) == "postgresql" else sqlite_insert
    stmt = insert(GymMonthlyMetrics).values(
        id=uuid.uuid4(),
        gym_id=gym_id,
        month_start=snapshot.month_start,
        **values,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[GymMonthlyMetrics.gym_id, GymMonthlyMetrics.month_start],
        set_=values,
    )
    db.execute(stmt)
    return get_month_metrics(db, gym_id, snapshot.month_start)


def compute_monthly_metrics(
    db: Session,
    gym_id: UUID,
    month_start: date,
    members: Optional[Sequence[Member]] = None,
) -> GymMonthlyMetrics:
    """Compute and upsert one month. Does not commit."""
    month_start = first_of_month(month_start)
    if members is None:
        members = _gym_members(db, gym_id)
    snapshot = summarize_month(members, month_start, _prior_churn_rates(db, gym_id, month_start))
    return upsert_monthly_metrics(db, gym_id, snapshot)


def recompute_all_metrics(db: Session, gym_id: UUID, today: Optional[date] = None) -> int:
    """
    Full-history rebuild from the earliest join/cancel month through the
    current month. Returns the number of months written. Does not commit.
    """
    today = today or date.today()
    members = _gym_members(db, gym_id)
    if not members:
        return 0

    dates = [m.join_date for m in members] + [m.cancel_date for m in members if m.cancel_date]
    current = first_of_month(min(dates))
    last = first_of_month(today)

    months = 0
    while current <= last:
        compute_monthly_metrics(db, gym_id, current, members=members)
        current = add_months(current, 1)
        months += 1

    logger.info(f"Recomputed {months} months of metrics for gym {gym_id}")
    return months


def risk_window_members(db: Session, gym_id: UUID, month_start: date) -> List[Member]:
    """Active members at month end whose tenure is within the risk window."""
    month_end = last_of_month(first_of_month(month_start))
    return [
        m for m in _gym_members(db, gym_id)
        if is_active_as_of(m, month_end)
        and calendar_months_between(m.join_date, month_end) <= SCORING_CONFIG.risk_window_months
    ]
