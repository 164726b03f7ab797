"""
Predictive intelligence endpoint.

Returns member churn predictions, cohort survival, the revenue scenario and
the learning-reranked strategic brief. Each call snapshots the brief's
recommendations as cards for the current period so owners can work their
checklists and the learning loop can score them later.
"""
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from routers.gyms import get_gym_or_404
from services.predictive_intelligence import build_predictive_intelligence, snapshot_recommendation_cards

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/gyms/{gym_id}", tags=["predictive"])


@router.get("/predictive")
def get_predictive_intelligence(
    gym_id: UUID,
    as_of: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
):
    get_gym_or_404(db, gym_id)
    as_of = as_of or date.today()
    intelligence = build_predictive_intelligence(db, gym_id, as_of)

    cards = snapshot_recommendation_cards(db, gym_id, intelligence, as_of)
    db.commit()
    if cards:
        logger.debug(f"Snapshotted {cards} recommendation cards for gym {gym_id}")

    return intelligence.to_dict()
