"""
Recommendation execution tracking and the learning loop.
"""
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import NotFoundError, RecommendationNotFoundError
from routers.gyms import get_gym_or_404
from schemas import (
    ChecklistToggleRequest,
    LearningRunResponse,
    OwnerActionCreate,
    OwnerActionResponse,
    RecommendationStateResponse,
)
from services.recommendation_learning import (
    get_period_start,
    get_recommendation_execution_state,
    log_owner_action,
    run_learning_update,
    toggle_checklist_item,
)

router = APIRouter(prefix="/v1/gyms/{gym_id}/recommendations", tags=["recommendations"])


@router.get("", response_model=List[RecommendationStateResponse])
def list_recommendations(
    gym_id: UUID,
    period_start: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
):
    get_gym_or_404(db, gym_id)
    return get_recommendation_execution_state(db, gym_id, period_start)


@router.post("/{recommendation_id}/checklist/{item_id}", response_model=RecommendationStateResponse)
def toggle_item(
    gym_id: UUID,
    recommendation_id: UUID,
    item_id: str,
    body: ChecklistToggleRequest,
    db: Session = Depends(get_db),
):
    try:
        completion = toggle_checklist_item(db, gym_id, recommendation_id, item_id, body.checked, body.note)
    except RecommendationNotFoundError:
        raise NotFoundError("Recommendation", str(recommendation_id))
    db.commit()

    state = get_recommendation_execution_state(db, gym_id, completion.card.period_start)
    return next(card for card in state if card["id"] == recommendation_id)


@router.post("/owner-actions", response_model=OwnerActionResponse, status_code=201)
def create_owner_action(gym_id: UUID, body: OwnerActionCreate, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    period = get_period_start(body.period_start or date.today())
    action = log_owner_action(db, gym_id, period, body.text.strip())
    db.commit()
    return action


@router.post("/learning/run", response_model=LearningRunResponse)
def run_learning(gym_id: UUID, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    result = run_learning_update(db, gym_id, date.today())
    db.commit()
    return result
