"""
Member Import Reconciler

Merges canonical member rows (from CSV or Wodify) into the roster.

Dedup rule: (gym_id, email). A row whose email already exists in the gym
overwrites name/status/dates/rate in place; anything else is inserted. Rows
without an email never match, so re-importing them creates new members.

A cancelled member reappearing as active is treated as one continuous
membership: the incoming row wins, including a cleared cancel date.

Writes go through INSERT ... ON CONFLICT DO UPDATE so two concurrent imports
of the same file cannot create duplicate (gym, email) rows. Each row runs in
its own savepoint; a storage failure, or a row whose cancel date precedes
its join date, is counted as "skipped" and the loop moves on.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.database import dialect_name
from models import Member, MemberImport
from services.csv_import import ParsedMember, RowError, parse_all_rows

logger = logging.getLogger(__name__)

RESPONSE_ERROR_LIMIT = 50
PERSISTED_ERROR_LIMIT = 200


@dataclass
class ReconcileResult:
    imported: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return {"imported": self.imported, "updated": self.updated, "skipped": self.skipped}


@dataclass
class CommitResult:
    import_id: Optional[UUID]
    total_rows: int
    imported: int
    updated: int
    skipped: int
    error_count: int
    errors: List[RowError] = field(default_factory=list)


def _insert_for(db: Session):
    return pg_insert if dialect_name(db) == "postgresql" else sqlite_insert


def _member_values(parsed: ParsedMember) -> Dict:
    try:
        rate = Decimal(parsed.monthly_rate)
    except (InvalidOperation, TypeError):
        rate = Decimal("0")
    join_date = date.fromisoformat(parsed.join_date)
    cancel_date = date.fromisoformat(parsed.cancel_date) if parsed.cancel_date else None
    if cancel_date and cancel_date < join_date:
        raise ValueError(f"cancel date {cancel_date} is before join date {join_date}")
    return {
        "name": parsed.name,
        "status": parsed.status,
        "join_date": join_date,
        "cancel_date": cancel_date,
        "monthly_rate": rate,
    }


def _upsert_one(db: Session, gym_id: UUID, parsed: ParsedMember, source: str) -> str:
    values = _member_values(parsed)

    if not parsed.email:
        db.add(Member(id=uuid.uuid4(), gym_id=gym_id, email=None, source=source, **values))
        db.flush()
        return "inserted"

    existed = db.query(Member.id).filter(
        Member.gym_id == gym_id,
        Member.email == parsed.email,
    ).first() is not None

    insert = _insert_for(db)
    stmt = insert(Member).values(
        id=uuid.uuid4(),
        gym_id=gym_id,
        email=parsed.email,
        source=source,
        **values,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Member.gym_id, Member.email],
        set_={**values, "source": source, "updated_at": func.now()},
    )
    db.execute(stmt)
    return "updated" if existed else "inserted"


def upsert_members(
    db: Session,
    gym_id: UUID,
    members: Iterable[ParsedMember],
    source: str = "csv",
) -> ReconcileResult:
    """Upsert canonical rows; does not commit."""
    result = ReconcileResult()
    for parsed in members:
        try:
            with db.begin_nested():
                outcome = _upsert_one(db, gym_id, parsed, source)
        except (SQLAlchemyError, ValueError) as e:
            result.skipped += 1
            logger.warning(
                f"Skipped member row for gym {gym_id}: {e}",
                extra={"extra_fields": {"gym_id": str(gym_id), "email": parsed.email}},
            )
            continue
        if outcome == "updated":
            result.updated += 1
        else:
            result.imported += 1
    # Bulk UPDATEs bypass the identity map.
    db.expire_all()
    return result


def previous_file_hashes(db: Session, gym_id: UUID) -> set:
    rows = db.query(MemberImport.file_hash).filter(MemberImport.gym_id == gym_id).all()
    return {r[0] for r in rows}


def commit_import(
    db: Session,
    gym_id: UUID,
    csv_text: str,
    mapping: Dict[str, int],
    file_hash: str,
    filename: Optional[str] = None,
) -> CommitResult:
    """
    Validate every row, upsert the valid ones and record the import.

    Structural errors (EmptyFileError, MissingMappingError) propagate before
    anything is written. The caller owns the commit.
    """
    parsed = parse_all_rows(csv_text, mapping)
    reconciled = upsert_members(db, gym_id, parsed.members, source="csv")

    history = MemberImport(
        gym_id=gym_id,
        filename=filename,
        file_hash=file_hash,
        total_rows=parsed.total_rows,
        imported=reconciled.imported,
        updated=reconciled.updated,
        skipped=reconciled.skipped,
        error_count=parsed.error_count,
        errors=[e.to_dict() for e in parsed.errors[:PERSISTED_ERROR_LIMIT]],
        column_mapping=dict(mapping),
    )
    db.add(history)
    db.flush()

    logger.info(
        f"Member import for gym {gym_id}: {reconciled.imported} imported, "
        f"{reconciled.updated} updated, {reconciled.skipped} skipped, {parsed.error_count} row errors",
        extra={"extra_fields": {"gym_id": str(gym_id), "import_id": str(history.id)}},
    )

    return CommitResult(
        import_id=history.id,
        total_rows=parsed.total_rows,
        imported=reconciled.imported,
        updated=reconciled.updated,
        skipped=reconciled.skipped,
        error_count=parsed.error_count,
        errors=parsed.errors[:RESPONSE_ERROR_LIMIT],
    )


def enqueue_metrics_recompute(gym_id: UUID) -> bool:
    """
    Fire-and-forget full metrics rebuild after a committed import or sync.

    A broker outage is logged and swallowed: the import already succeeded.
    """
    from tasks import celery_app

    try:
        celery_app.send_task("metrics.recompute_gym_metrics", args=[str(gym_id)])
        return True
    except Exception as e:
        logger.error(f"Failed to enqueue metrics recompute for gym {gym_id}: {e}", exc_info=True)
        return False
