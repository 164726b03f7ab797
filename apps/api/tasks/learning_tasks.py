"""
Daily learning update.

Scores every gym's recommendation cards at their 30/60/90-day horizons and
folds the results into the per-type learning stats. Safe to re-run: each
(card, window) pair is recorded once.
"""
import logging
from datetime import date
from typing import Dict

from core.database import get_db_sync
from models import RecommendationCard
from services.recommendation_learning import run_learning_update
from tasks import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="learning.run_learning_updates")
def run_learning_updates_task() -> Dict:
    db = get_db_sync()
    today = date.today()
    try:
        gym_ids = [row[0] for row in db.query(RecommendationCard.gym_id).distinct().all()]
        logger.info(f"Running learning update for {len(gym_ids)} gyms")

        updated = 0
        failed = 0
        for gym_id in gym_ids:
            try:
                result = run_learning_update(db, gym_id, today)
                db.commit()
                updated += result["updated"]
            except Exception as e:
                db.rollback()
                failed += 1
                logger.error(f"Learning update failed for gym {gym_id}: {e}", exc_info=True)

        return {"status": "success", "gyms": len(gym_ids), "updated": updated, "failed": failed}
    finally:
        db.close()
