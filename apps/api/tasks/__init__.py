"""
Celery tasks for background processing.

Tasks are defined here and imported by both the API (to enqueue) and
the worker (to execute).
"""
from celery import Celery
from core.config import settings

# Create Celery app instance
celery_app = Celery(
    "gym_analytics",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes max per task
    task_soft_time_limit=25 * 60,  # 25 minutes soft limit
)

from celerybeat_schedule import beat_schedule  # noqa: E402

celery_app.conf.beat_schedule = beat_schedule

# Import tasks to register them
from . import metrics_tasks  # noqa: E402
from . import learning_tasks  # noqa: E402
from . import sync_tasks  # noqa: E402

__all__ = ["celery_app"]
