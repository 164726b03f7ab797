"""
Monthly metrics, the owner report and trend intelligence.

Metrics are normally rebuilt in the background after an import or sync;
the recompute endpoint runs the same full rebuild synchronously.
"""
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from models import Member
from routers.gyms import get_gym_or_404
from schemas import (
    GymReportResponse,
    GymTrendsResponse,
    MonthlyMetricsResponse,
    RecomputeResponse,
    RiskMemberResponse,
)
from services.gym_metrics import (
    add_months,
    compute_monthly_metrics,
    first_of_month,
    get_metrics_history,
    get_month_metrics,
    is_active_as_of,
    last_of_month,
    recompute_all_metrics,
    risk_window_members,
)
from services.metric_reports import generate_metric_reports
from services.revenue_scenario import compute_revenue_scenario
from services.trend_intelligence import generate_forecast, generate_trend_intelligence

router = APIRouter(prefix="/v1/gyms/{gym_id}", tags=["metrics"])


@router.post("/metrics/recompute", response_model=RecomputeResponse)
def recompute_metrics(gym_id: UUID, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    months = recompute_all_metrics(db, gym_id, date.today())
    db.commit()
    return RecomputeResponse(months_computed=months)


@router.get("/metrics", response_model=List[MonthlyMetricsResponse])
def metrics_history(gym_id: UUID, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    return get_metrics_history(db, gym_id)


@router.get("/report", response_model=GymReportResponse)
def gym_report(
    gym_id: UUID,
    month: Optional[date] = Query(default=None, description="Any date in the month (YYYY-MM-01)"),
    db: Session = Depends(get_db),
):
    """
    Metrics row, metric reports, risk-window members and a 6-month forecast
    for one month. A month with no stored row is computed on the fly.
    """
    get_gym_or_404(db, gym_id)
    month_start = first_of_month(month or date.today())

    metrics = get_month_metrics(db, gym_id, month_start)
    if metrics is None:
        metrics = compute_monthly_metrics(db, gym_id, month_start)
        db.commit()

    prior = [get_month_metrics(db, gym_id, add_months(month_start, -offset)) for offset in (1, 2, 3)]
    reports = generate_metric_reports(metrics, prior)

    history = [m for m in get_metrics_history(db, gym_id) if m.month_start <= month_start]
    month_end = last_of_month(month_start)
    as_of = min(month_end, date.today())
    members = db.query(Member).filter(Member.gym_id == gym_id).all()
    active_count = sum(1 for m in members if is_active_as_of(m, as_of))
    forecast = compute_revenue_scenario(history, active_count, float(metrics.arm), as_of)

    return GymReportResponse(
        month_start=month_start,
        metrics=MonthlyMetricsResponse.model_validate(metrics),
        reports=[r.to_dict() for r in reports],
        risk_members=[RiskMemberResponse.model_validate(m) for m in risk_window_members(db, gym_id, month_start)],
        forecast=forecast.to_dict(),
    )


@router.get("/trends", response_model=GymTrendsResponse)
def gym_trends(gym_id: UUID, db: Session = Depends(get_db)):
    """Trend intelligence over the full stored history, plus the 3-month forecast."""
    get_gym_or_404(db, gym_id)
    history = get_metrics_history(db, gym_id)
    return GymTrendsResponse(
        months=len(history),
        trend_intelligence=generate_trend_intelligence(history).to_dict(),
        forecast=generate_forecast(history).to_dict(),
    )
