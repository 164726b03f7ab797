"""
Wodify sync.

Pulls clients and memberships for a connected gym, maps them to canonical
member rows and feeds them to the same reconciler the CSV import uses.
Every run is recorded in wodify_sync_run; the connection row carries the
latest outcome for display.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from models import WodifyConnection, WodifySyncRun
from services.member_import import enqueue_metrics_recompute, upsert_members
from services.token_encryption import decrypt_token, encrypt_token, key_fingerprint
from services.wodify_connector import (
    WodifyAPIError,
    WodifyAuthError,
    fetch_all_clients,
    fetch_all_memberships,
    test_connection,
    transform_client,
)

logger = logging.getLogger(__name__)


class WodifyNotConnectedError(Exception):
    """The gym has no usable Wodify connection."""


@dataclass
class SyncOutcome:
    run_id: Optional[UUID]
    status: str
    clients_fetched: int = 0
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "run_id": str(self.run_id) if self.run_id else None,
            "status": self.status,
            "clients_fetched": self.clients_fetched,
            "imported": self.imported,
            "updated": self.updated,
            "skipped": self.skipped,
            "error": self.error,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_connection(db: Session, gym_id: UUID) -> Optional[WodifyConnection]:
    return db.query(WodifyConnection).filter(WodifyConnection.gym_id == gym_id).first()


def connect_wodify(db: Session, gym_id: UUID, api_key: str) -> WodifyConnection:
    """
    Validate a key against Wodify and store it encrypted.

    Raises WodifyAuthError for a rejected key and WodifyAPIError when Wodify
    cannot be reached. Does not commit.
    """
    api_key = api_key.strip()
    result = test_connection(api_key)
    locations = result.get("locations") or []
    location_name = None
    if locations and isinstance(locations[0], dict):
        location_name = locations[0].get("name") or locations[0].get("location_name")

    connection = get_connection(db, gym_id)
    if connection is None:
        connection = WodifyConnection(gym_id=gym_id)
        db.add(connection)

    connection.api_key_encrypted = encrypt_token(api_key)
    connection.api_key_fingerprint = key_fingerprint(api_key)
    connection.location_name = location_name
    connection.status = "connected"
    connection.last_error_at = None
    connection.last_error_message = None
    db.flush()

    logger.info(f"Wodify connected for gym {gym_id} ({connection.api_key_fingerprint})")
    return connection


def disconnect_wodify(db: Session, gym_id: UUID) -> bool:
    connection = get_connection(db, gym_id)
    if connection is None:
        return False
    db.delete(connection)
    db.flush()
    logger.info(f"Wodify disconnected for gym {gym_id}")
    return True


def run_wodify_sync(db: Session, gym_id: UUID, today: Optional[date] = None) -> SyncOutcome:
    """
    Run one full sync and commit its results.

    Vendor failures are recorded on the run and the connection rather than
    raised, so a scheduled sweep keeps going across gyms. A missing
    connection raises WodifyNotConnectedError.
    """
    today = today or date.today()
    connection = get_connection(db, gym_id)
    if connection is None:
        raise WodifyNotConnectedError(f"Gym {gym_id} has no Wodify connection")

    run = WodifySyncRun(gym_id=gym_id, status="running")
    db.add(run)
    connection.last_sync_at = _now()
    db.commit()

    api_key = decrypt_token(connection.api_key_encrypted)
    if not api_key:
        return _fail(db, connection, run, "Stored API key could not be decrypted; reconnect Wodify", auth=True)

    try:
        clients = fetch_all_clients(api_key)
        memberships = fetch_all_memberships(api_key)
    except WodifyAuthError as e:
        return _fail(db, connection, run, str(e), auth=True)
    except WodifyAPIError as e:
        return _fail(db, connection, run, str(e))

    rows = []
    unnamed = 0
    for client in clients:
        parsed = transform_client(client, memberships, today)
        if parsed.name == "Unknown":
            unnamed += 1
            continue
        rows.append(parsed)

    reconciled = upsert_members(db, gym_id, rows, source="wodify")

    run.status = "success"
    run.finished_at = _now()
    run.clients_fetched = len(clients)
    run.imported = reconciled.imported
    run.updated = reconciled.updated
    run.skipped = reconciled.skipped + unnamed
    connection.status = "connected"
    connection.last_success_at = run.finished_at
    connection.last_error_message = None
    db.commit()

    logger.info(
        f"Wodify sync for gym {gym_id}: {len(clients)} clients, {run.imported} imported, "
        f"{run.updated} updated, {run.skipped} skipped"
    )
    enqueue_metrics_recompute(gym_id)

    return SyncOutcome(
        run_id=run.id,
        status=run.status,
        clients_fetched=run.clients_fetched,
        imported=run.imported,
        updated=run.updated,
        skipped=run.skipped,
    )


def _fail(
    db: Session,
    connection: WodifyConnection,
    run: WodifySyncRun,
    message: str,
    auth: bool = False,
) -> SyncOutcome:
    logger.error(f"Wodify sync failed for gym {connection.gym_id}: {message}")
    now = _now()
    run.status = "error"
    run.finished_at = now
    run.error = message[:1000]
    connection.status = "error" if auth else connection.status
    connection.last_error_at = now
    connection.last_error_message = message[:1000]
    db.commit()
    return SyncOutcome(run_id=run.id, status="error", error=message)


def latest_sync_runs(db: Session, gym_id: UUID, limit: int = 10):
    return (
        db.query(WodifySyncRun)
        .filter(WodifySyncRun.gym_id == gym_id)
        .order_by(WodifySyncRun.started_at.desc())
        .limit(limit)
        .all()
    )
