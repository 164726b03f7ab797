"""
Wodify integration endpoints.

Connecting validates the key against Wodify before it is stored encrypted.
Syncs run in the worker; the status endpoint shows the connection and the
most recent runs.
"""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import BadRequestError, NotFoundError, UpstreamServiceError
from routers.gyms import get_gym_or_404
from schemas import (
    WodifyConnectionResponse,
    WodifyConnectRequest,
    WodifySyncQueuedResponse,
    WodifySyncRunResponse,
)
from services.wodify_connector import WodifyAPIError, WodifyAuthError
from services.wodify_sync import connect_wodify, disconnect_wodify, get_connection, latest_sync_runs
from tasks import celery_app

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/gyms/{gym_id}/integrations/wodify", tags=["integrations"])


def _connection_response(connection) -> WodifyConnectionResponse:
    if connection is None:
        return WodifyConnectionResponse(connected=False)
    return WodifyConnectionResponse(
        connected=connection.status != "disconnected",
        status=connection.status,
        api_key_fingerprint=connection.api_key_fingerprint,
        location_name=connection.location_name,
        last_sync_at=connection.last_sync_at,
        last_success_at=connection.last_success_at,
        last_error_at=connection.last_error_at,
        last_error_message=connection.last_error_message,
    )


@router.get("", response_model=WodifyConnectionResponse)
def wodify_status(gym_id: UUID, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    return _connection_response(get_connection(db, gym_id))


@router.post("", response_model=WodifyConnectionResponse)
def connect(gym_id: UUID, body: WodifyConnectRequest, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    try:
        connection = connect_wodify(db, gym_id, body.api_key)
    except WodifyAuthError:
        raise BadRequestError("Wodify rejected the API key", error_code="WODIFY_AUTH_FAILED")
    except WodifyAPIError as e:
        raise UpstreamServiceError(f"Could not reach Wodify: {e}", service="wodify")
    db.commit()
    return _connection_response(connection)


@router.delete("", status_code=204)
def disconnect(gym_id: UUID, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    if not disconnect_wodify(db, gym_id):
        raise NotFoundError("Wodify connection", str(gym_id))
    db.commit()


@router.post("/sync", response_model=WodifySyncQueuedResponse, status_code=202)
def enqueue_sync(gym_id: UUID, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    if get_connection(db, gym_id) is None:
        raise NotFoundError("Wodify connection", str(gym_id))
    result = celery_app.send_task("sync.run_wodify_sync", args=[str(gym_id)])
    logger.info(f"Queued Wodify sync for gym {gym_id} (task {result.id})")
    return WodifySyncQueuedResponse(queued=True, task_id=str(result.id))


@router.get("/runs", response_model=List[WodifySyncRunResponse])
def sync_runs(gym_id: UUID, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    return latest_sync_runs(db, gym_id)
