"""
Recommendation Learning Loop

Recommendation cards snapshot a brief recommendation with its checklist and
a baseline forecast (members, MRR, churn) at generation time. Owners tick
checklist items; execution strength is the fraction ticked.

Once a card's execution strength reaches max(threshold, 0.6) and an
evaluation window (30/60/90 days after period start) has elapsed, the card is
scored against the latest stored metrics on or before that date:

    impact = (dMRR x 0.65 + dMembers x 35 + dChurn x 120) x overlap_weight

where dChurn is baseline churn minus outcome churn and overlap_weight
(1.0 / 0.7 / 0.5) splits credit between concurrently executed cards.
Each event updates an exponentially smoothed stat per intervention type,
once for the gym and once globally. Events are unique per
(recommendation, window), so the job can be re-run safely.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import RecommendationNotFoundError
from core.scoring_config import SCORING_CONFIG, ScoringConfig
from models import (
    ChecklistItemCompletion,
    GymMonthlyMetrics,
    OwnerAdditionalAction,
    RecommendationCard,
    RecommendationLearningEvent,
    RecommendationLearningStat,
)
from services.action_classifier import classify_action
from services.gym_metrics import first_of_month

logger = logging.getLogger(__name__)


def get_period_start(today: Optional[date] = None) -> date:
    return first_of_month(today or date.today())


def make_item_id(recommendation_type: str, text: str, index: int) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return f"{recommendation_type}-{index}-{slug[:32]}"


# ---------------------------------------------------------------------------
# Cards and checklist
# ---------------------------------------------------------------------------

def ensure_recommendation_cards(
    db: Session,
    gym_id: UUID,
    period_start: date,
    recommendations: Sequence,
    baseline_forecast: Dict[str, float],
) -> List[RecommendationCard]:
    """
    Snapshot brief recommendations as cards for the period. A card is
    identified by (gym, period, type, headline); existing cards are kept as-is.
    Does not commit.
    """
    cards = []
    for rec in recommendations:
        existing = (
            db.query(RecommendationCard)
            .filter(
                RecommendationCard.gym_id == gym_id,
                RecommendationCard.period_start == period_start,
                RecommendationCard.recommendation_type == rec.intervention_type,
                RecommendationCard.headline == rec.headline,
            )
            .first()
        )
        if existing:
            cards.append(existing)
            continue

        card = RecommendationCard(
            gym_id=gym_id,
            period_start=period_start,
            recommendation_type=rec.intervention_type,
            pillar=rec.pillar,
            headline=rec.headline,
            checklist_items=[
                {"item_id": make_item_id(rec.intervention_type, text, index), "text": text}
                for index, text in enumerate(rec.execution_checklist)
            ],
            baseline_forecast=dict(baseline_forecast),
            execution_strength_threshold=SCORING_CONFIG.min_execution_strength,
        )
        db.add(card)
        cards.append(card)
    db.flush()
    return cards


def _card_state(card: RecommendationCard, completions: Dict[str, ChecklistItemCompletion]) -> dict:
    checklist = []
    for item in card.checklist_items or []:
        completion = completions.get(item["item_id"])
        checklist.append({
            "item_id": item["item_id"],
            "text": item["text"],
            "checked": bool(completion and completion.checked),
            "checked_at": completion.checked_at if completion else None,
            "note": completion.note if completion else None,
        })
    checked = sum(1 for item in checklist if item["checked"])
    total = len(checklist)
    return {
        "id": card.id,
        "gym_id": card.gym_id,
        "period_start": card.period_start,
        "recommendation_type": card.recommendation_type,
        "pillar": card.pillar,
        "headline": card.headline,
        "checklist": checklist,
        "total_items": total,
        "checked_items": checked,
        "execution_strength": checked / total if total else 0.0,
        "execution_strength_threshold": float(card.execution_strength_threshold),
        "baseline_forecast": card.baseline_forecast,
    }


def get_recommendation_execution_state(
    db: Session,
    gym_id: UUID,
    period_start: Optional[date] = None,
) -> List[dict]:
    """Execution state per card; all periods when period_start is None."""
    query = db.query(RecommendationCard).filter(RecommendationCard.gym_id == gym_id)
    if period_start is not None:
        query = query.filter(RecommendationCard.period_start == period_start)
    cards = query.order_by(RecommendationCard.period_start.asc(), RecommendationCard.generated_at.asc()).all()
    if not cards:
        return []

    rows = (
        db.query(ChecklistItemCompletion)
        .filter(ChecklistItemCompletion.recommendation_id.in_([c.id for c in cards]))
        .all()
    )
    by_card: Dict[UUID, Dict[str, ChecklistItemCompletion]] = {}
    for row in rows:
        by_card.setdefault(row.recommendation_id, {})[row.item_id] = row

    return [_card_state(card, by_card.get(card.id, {})) for card in cards]


def toggle_checklist_item(
    db: Session,
    gym_id: UUID,
    recommendation_id: UUID,
    item_id: str,
    checked: bool,
    note: Optional[str] = None,
) -> ChecklistItemCompletion:
    card = db.query(RecommendationCard).filter(RecommendationCard.id == recommendation_id).first()
    if card is None or card.gym_id != gym_id:
        raise RecommendationNotFoundError(str(recommendation_id))

    now = datetime.now(timezone.utc)
    existing = (
        db.query(ChecklistItemCompletion)
        .filter(
            ChecklistItemCompletion.recommendation_id == recommendation_id,
            ChecklistItemCompletion.item_id == item_id,
        )
        .first()
    )
    if existing:
        existing.checked = checked
        existing.checked_at = now
        if note is not None:
            existing.note = note
        completion = existing
    else:
        completion = ChecklistItemCompletion(
            recommendation_id=recommendation_id,
            item_id=item_id,
            checked=checked,
            checked_at=now,
            note=note,
        )
        db.add(completion)
    db.flush()
    return completion


def log_owner_action(db: Session, gym_id: UUID, period_start: date, text: str) -> OwnerAdditionalAction:
    result = classify_action(text)
    action = OwnerAdditionalAction(
        gym_id=gym_id,
        period_start=period_start,
        text=text,
        classification_type=result.classification_type,
        classification_confidence=result.confidence,
        classification_status=result.status,
    )
    db.add(action)
    db.flush()
    return action


# ---------------------------------------------------------------------------
# Learning update
# ---------------------------------------------------------------------------

def overlap_weight(executed_count: int, config: ScoringConfig = SCORING_CONFIG) -> float:
    if executed_count <= 1:
        return config.overlap_weights[1]
    if executed_count == 2:
        return config.overlap_weights[2]
    return config.overlap_weights[3]


def compute_impact_score(
    delta_mrr: float,
    delta_members: int,
    delta_churn: float,
    weight: float,
    config: ScoringConfig = SCORING_CONFIG,
) -> float:
    return (
        delta_mrr * config.impact_weight_mrr
        + delta_members * config.impact_weight_members
        + delta_churn * config.impact_weight_churn
    ) * weight


def quality_weight(roster_size: int, config: ScoringConfig = SCORING_CONFIG) -> float:
    return max(config.quality_weight_floor, min(1.0, roster_size / config.quality_roster_divisor))


def upsert_learning_stat(
    db: Session,
    recommendation_type: str,
    gym_id: Optional[UUID],
    impact_score: float,
    execution_strength: float,
    roster_size: int,
    config: ScoringConfig = SCORING_CONFIG,
) -> RecommendationLearningStat:
    query = db.query(RecommendationLearningStat).filter(
        RecommendationLearningStat.recommendation_type == recommendation_type
    )
    if gym_id is None:
        query = query.filter(RecommendationLearningStat.gym_id.is_(None))
    else:
        query = query.filter(RecommendationLearningStat.gym_id == gym_id)
    existing = query.first()

    quality = quality_weight(roster_size, config)
    rate = (config.gym_learning_rate if gym_id is not None else config.global_learning_rate) * quality
    gain = config.confidence_gain_rate * execution_strength * quality
    now = datetime.now(timezone.utc)

    if existing is None:
        stat = RecommendationLearningStat(
            recommendation_type=recommendation_type,
            gym_id=gym_id,
            expected_impact=impact_score * rate,
            confidence=min(config.initial_confidence_cap, config.initial_confidence + gain),
            sample_size=1,
            updated_at=now,
        )
        db.add(stat)
        db.flush()
        return stat

    existing.expected_impact = float(existing.expected_impact) * (1 - rate) + impact_score * rate
    existing.confidence = min(config.confidence_cap, float(existing.confidence) + gain)
    existing.sample_size = existing.sample_size + 1
    existing.updated_at = now
    db.flush()
    return existing


def _outcome_metrics(db: Session, gym_id: UUID, on_or_before: date) -> Optional[GymMonthlyMetrics]:
    return (
        db.query(GymMonthlyMetrics)
        .filter(GymMonthlyMetrics.gym_id == gym_id, GymMonthlyMetrics.month_start <= on_or_before)
        .order_by(GymMonthlyMetrics.month_start.desc())
        .first()
    )


def _event_exists(db: Session, recommendation_id: UUID, window: int) -> bool:
    return db.query(RecommendationLearningEvent.id).filter(
        RecommendationLearningEvent.recommendation_id == recommendation_id,
        RecommendationLearningEvent.evaluation_window_days == window,
    ).first() is not None


def run_learning_update(
    db: Session,
    gym_id: UUID,
    today: Optional[date] = None,
    config: ScoringConfig = SCORING_CONFIG,
) -> Dict[str, int]:
    """Evaluate every eligible card of the gym. Does not commit."""
    today = today or date.today()
    cards = get_recommendation_execution_state(db, gym_id)
    eligible = [
        c for c in cards
        if c["execution_strength"] >= max(c["execution_strength_threshold"], config.min_execution_strength)
    ]
    if not eligible:
        return {"updated": 0}

    updates = 0
    for card in eligible:
        baseline = card["baseline_forecast"]
        if not baseline:
            continue
        for window in config.evaluation_windows:
            if _event_exists(db, card["id"], window):
                continue
            evaluation_date = card["period_start"] + timedelta(days=window)
            if today < evaluation_date:
                continue
            outcome = _outcome_metrics(db, gym_id, evaluation_date)
            if outcome is None:
                continue

            delta_members = int(outcome.active_members) - int(baseline.get("baseline_members", 0))
            delta_mrr = float(outcome.mrr) - float(baseline.get("baseline_mrr", 0))
            delta_churn = float(baseline.get("baseline_churn", 0)) - float(outcome.churn_rate)

            concurrent = sum(
                1 for other in eligible
                if other["period_start"] <= evaluation_date
                and other["period_start"] + timedelta(days=window) >= card["period_start"]
            )
            weight = overlap_weight(concurrent, config)
            impact = compute_impact_score(delta_mrr, delta_members, delta_churn, weight, config)

            try:
                with db.begin_nested():
                    db.add(RecommendationLearningEvent(
                        recommendation_id=card["id"],
                        recommendation_type=card["recommendation_type"],
                        gym_id=gym_id,
                        evaluation_window_days=window,
                        execution_strength=round(card["execution_strength"], 3),
                        overlap_weight=weight,
                        impact_score=round(impact, 4),
                        delta_members=delta_members,
                        delta_mrr=round(delta_mrr, 2),
                        delta_churn=round(delta_churn, 2),
                    ))
            except IntegrityError:
                # Another run recorded this window first.
                logger.debug(f"Learning event already exists for {card['id']} window {window}")
                continue

            roster = int(outcome.active_members)
            upsert_learning_stat(db, card["recommendation_type"], None, impact,
                                 card["execution_strength"], roster, config)
            upsert_learning_stat(db, card["recommendation_type"], gym_id, impact,
                                 card["execution_strength"], roster, config)
            updates += 1

    logger.info(f"Learning update for gym {gym_id}: {updates} events recorded")
    return {"updated": updates}


# ---------------------------------------------------------------------------
# Feedback weights
# ---------------------------------------------------------------------------

def feedback_weight(expected_impact: float, confidence: float, config: ScoringConfig = SCORING_CONFIG) -> float:
    raw = 1 + (expected_impact / config.feedback_impact_scale) * confidence
    return round(max(config.feedback_weight_min, min(config.feedback_weight_max, raw)), 3)


def get_feedback_weights(db: Session, gym_id: UUID) -> Dict[str, float]:
    """Ranking weight per intervention type; gym stats override global ones."""
    stats = (
        db.query(RecommendationLearningStat)
        .filter(
            (RecommendationLearningStat.gym_id == gym_id)
            | (RecommendationLearningStat.gym_id.is_(None))
        )
        .all()
    )
    weights: Dict[str, float] = {}
    # Global first so gym-specific rows overwrite them.
    for stat in sorted(stats, key=lambda s: s.gym_id is not None):
        weights[stat.recommendation_type] = feedback_weight(float(stat.expected_impact), float(stat.confidence))
    return weights
