"""
Celery task for rebuilding a gym's monthly metrics.

Enqueued by name after every committed CSV import and Wodify sync.
"""
import logging
from datetime import date
from typing import Dict
from uuid import UUID

from celery import Task

from core.database import get_db_sync
from services.gym_metrics import recompute_all_metrics
from tasks import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="metrics.recompute_gym_metrics", bind=True)
def recompute_gym_metrics_task(self: Task, gym_id: str) -> Dict:
    db = get_db_sync()
    try:
        months = recompute_all_metrics(db, UUID(gym_id), date.today())
        db.commit()
        return {"status": "success", "gym_id": gym_id, "months": months}
    except Exception as e:
        db.rollback()
        logger.error(f"Metrics recompute failed for gym {gym_id}: {e}", exc_info=True)
        return {"status": "error", "gym_id": gym_id, "error": str(e)}
    finally:
        db.close()
