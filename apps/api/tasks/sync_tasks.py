"""
Celery tasks for Wodify synchronization.

These tasks run in the background worker to prevent blocking the API.
"""
import logging
from datetime import date
from typing import Dict
from uuid import UUID

from celery import Task

from core.database import get_db_sync
from models import WodifyConnection
from services.wodify_sync import WodifyNotConnectedError, run_wodify_sync
from tasks import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="sync.run_wodify_sync", bind=True)
def run_wodify_sync_task(self: Task, gym_id: str) -> Dict:
    db = get_db_sync()
    try:
        outcome = run_wodify_sync(db, UUID(gym_id), date.today())
        return outcome.to_dict()
    except WodifyNotConnectedError as e:
        logger.warning(str(e))
        return {"status": "skipped", "gym_id": gym_id, "error": str(e)}
    except Exception as e:
        db.rollback()
        logger.error(f"Wodify sync crashed for gym {gym_id}: {e}", exc_info=True)
        return {"status": "error", "gym_id": gym_id, "error": str(e)}
    finally:
        db.close()


@celery_app.task(name="sync.run_scheduled_wodify_syncs")
def run_scheduled_wodify_syncs_task() -> Dict:
    """Fan out one sync task per connected gym."""
    db = get_db_sync()
    try:
        gym_ids = [
            str(row[0])
            for row in db.query(WodifyConnection.gym_id)
            .filter(WodifyConnection.status != "disconnected")
            .all()
        ]
    finally:
        db.close()

    for gym_id in gym_ids:
        run_wodify_sync_task.delay(gym_id)
    logger.info(f"Queued Wodify sync for {len(gym_ids)} gyms")
    return {"status": "queued", "count": len(gym_ids)}
