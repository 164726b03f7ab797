"""
Predictive intelligence payload for one gym.

Loads the roster, contact log, stored metrics and learned feedback weights,
then runs the risk engine, cohort analysis, revenue scenario and strategic
brief as of a single date.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.scoring_config import SCORING_CONFIG
from models import GymMonthlyMetrics, Member, MemberContact
from services.cohort_analysis import CohortIntelligence, compute_cohort_intelligence
from services.gym_metrics import first_of_month, get_metrics_history, is_active_as_of
from services.member_risk import (
    MemberPrediction,
    PredictionSummary,
    build_gym_aggregate,
    predict_members,
    summarize_predictions,
)
from services.recommendation_learning import ensure_recommendation_cards, get_feedback_weights, get_period_start
from services.revenue_scenario import RevenueScenario, compute_revenue_scenario
from services.strategic_brief import StrategicBrief, generate_strategic_brief

logger = logging.getLogger(__name__)

NO_MEMBERS_MESSAGE = "No members imported yet. Import a roster to see predictions."


@dataclass
class PredictiveIntelligence:
    scoring_version: str
    as_of: str
    members: List[MemberPrediction]
    summary: PredictionSummary
    cohort_intelligence: CohortIntelligence
    revenue_scenario: RevenueScenario
    strategic_brief: Optional[StrategicBrief]
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _contacts_by_member(db: Session, gym_id: UUID) -> Dict[str, List[MemberContact]]:
    grouped: Dict[str, List[MemberContact]] = {}
    rows = db.query(MemberContact).filter(MemberContact.gym_id == gym_id).all()
    for contact in rows:
        grouped.setdefault(str(contact.member_id), []).append(contact)
    return grouped


def _history_through(db: Session, gym_id: UUID, as_of: date) -> List[GymMonthlyMetrics]:
    cutoff = first_of_month(as_of)
    return [m for m in get_metrics_history(db, gym_id) if m.month_start <= cutoff]


def _empty(as_of: date) -> PredictiveIntelligence:
    return PredictiveIntelligence(
        scoring_version=SCORING_CONFIG.version,
        as_of=as_of.isoformat(),
        members=[],
        summary=summarize_predictions([]),
        cohort_intelligence=CohortIntelligence(insights=[NO_MEMBERS_MESSAGE]),
        revenue_scenario=compute_revenue_scenario([], 0, 0.0, as_of),
        strategic_brief=None,
        message=NO_MEMBERS_MESSAGE,
    )


def build_predictive_intelligence(
    db: Session,
    gym_id: UUID,
    as_of: Optional[date] = None,
) -> PredictiveIntelligence:
    as_of = as_of or date.today()
    members = db.query(Member).filter(Member.gym_id == gym_id).all()
    if not members:
        return _empty(as_of)

    active = [m for m in members if is_active_as_of(m, as_of)]
    cancelled = [m for m in members if m.cancel_date is not None and m.cancel_date <= as_of]
    history = _history_through(db, gym_id, as_of)
    latest = history[-1] if history else None
    weights = get_feedback_weights(db, gym_id)

    aggregate = build_gym_aggregate(active, cancelled, latest, weights)
    predictions = predict_members(active, _contacts_by_member(db, gym_id), aggregate, as_of)
    summary = summarize_predictions(predictions)
    cohort = compute_cohort_intelligence(members, as_of)
    scenario = compute_revenue_scenario(history, len(active), aggregate.arm, as_of)
    brief = generate_strategic_brief(
        predictions, summary, cohort, scenario, history,
        churn_rate=aggregate.churn_rate,
        arm=aggregate.arm,
        active_count=len(active),
        as_of=as_of,
        feedback_weights=weights,
    )

    logger.info(
        f"Predictive intelligence for gym {gym_id}: {len(predictions)} members, "
        f"{summary.total_at_risk} at risk, {len(brief.recommendations)} recommendations"
    )
    return PredictiveIntelligence(
        scoring_version=SCORING_CONFIG.version,
        as_of=as_of.isoformat(),
        members=predictions,
        summary=summary,
        cohort_intelligence=cohort,
        revenue_scenario=scenario,
        strategic_brief=brief,
    )


def snapshot_recommendation_cards(
    db: Session,
    gym_id: UUID,
    intelligence: PredictiveIntelligence,
    as_of: Optional[date] = None,
) -> int:
    """Persist the brief's recommendations as cards for the current period. Does not commit."""
    brief = intelligence.strategic_brief
    if brief is None or not brief.recommendations:
        return 0
    as_of = as_of or date.today()
    history = _history_through(db, gym_id, as_of)
    latest = history[-1] if history else None
    baseline = {
        "baseline_members": int(latest.active_members) if latest else len(intelligence.members),
        "baseline_mrr": float(latest.mrr) if latest else 0.0,
        "baseline_churn": float(latest.churn_rate) if latest else 0.0,
    }
    cards = ensure_recommendation_cards(db, gym_id, get_period_start(as_of), brief.recommendations, baseline)
    return len(cards)
