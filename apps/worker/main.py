"""
Celery worker entry point.

Run with `celery -A main worker` (and `celery -A main beat` for the
schedule) from apps/worker; the API package is put on the import path.
"""
import os
import sys

# The worker image mounts the API code at /api; local runs use the sibling directory.
API_DIR = os.environ.get("API_DIR") or os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "api")
sys.path.insert(0, API_DIR)

from tasks import celery_app  # noqa: E402


@celery_app.task(name="worker.health_check")
def health_check():
    """Health check task"""
    return {"status": "ok"}
