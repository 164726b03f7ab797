"""
Two-phase CSV roster import.

Preview detects the column mapping and validates rows without writing.
Commit re-validates every row against a complete mapping, upserts members,
records the import and fires a background metrics rebuild.
"""
from dataclasses import asdict
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.exceptions import BadRequestError, EmptyFileError, MissingMappingError, ValidationError
from models import MemberImport
from routers.gyms import get_gym_or_404
from schemas import (
    ImportCommitRequest,
    ImportCommitResponse,
    ImportPreviewRequest,
    ImportPreviewResponse,
    MemberImportResponse,
)
from services.csv_import import compute_file_hash, preview_csv
from services.member_import import commit_import, enqueue_metrics_recompute, previous_file_hashes

router = APIRouter(prefix="/v1/gyms/{gym_id}/imports", tags=["imports"])


def _check_size(csv_text: str) -> None:
    if len(csv_text.encode("utf-8")) > settings.IMPORT_MAX_BYTES:
        raise BadRequestError(
            f"CSV exceeds the {settings.IMPORT_MAX_BYTES // (1024 * 1024)} MB upload limit",
            error_code="FILE_TOO_LARGE",
        )


@router.post("/preview", response_model=ImportPreviewResponse)
def preview_import(gym_id: UUID, body: ImportPreviewRequest, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    _check_size(body.csv_text)
    try:
        result = preview_csv(body.csv_text, body.mapping, previous_file_hashes(db, gym_id))
    except EmptyFileError as e:
        raise BadRequestError(str(e), error_code="EMPTY_FILE")
    return asdict(result)


@router.post("/commit", response_model=ImportCommitResponse)
def commit_csv_import(gym_id: UUID, body: ImportCommitRequest, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    _check_size(body.csv_text)

    file_hash = compute_file_hash(body.csv_text)
    duplicate = file_hash in previous_file_hashes(db, gym_id)
    try:
        result = commit_import(db, gym_id, body.csv_text, body.mapping, file_hash, body.filename)
    except EmptyFileError as e:
        raise BadRequestError(str(e), error_code="EMPTY_FILE")
    except MissingMappingError as e:
        raise ValidationError(str(e), field=e.field)
    db.commit()

    enqueue_metrics_recompute(gym_id)

    return ImportCommitResponse(
        import_id=result.import_id,
        total_rows=result.total_rows,
        imported=result.imported,
        updated=result.updated,
        skipped=result.skipped,
        error_count=result.error_count,
        errors=[e.to_dict() for e in result.errors],
        duplicate_import=duplicate,
    )


@router.get("", response_model=List[MemberImportResponse])
def list_imports(gym_id: UUID, db: Session = Depends(get_db)):
    get_gym_or_404(db, gym_id)
    return (
        db.query(MemberImport)
        .filter(MemberImport.gym_id == gym_id)
        .order_by(MemberImport.created_at.desc())
        .limit(50)
        .all()
    )
