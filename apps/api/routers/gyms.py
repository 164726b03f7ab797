"""
Gym and roster endpoints.

Members are created by imports and syncs; this router only reads the roster
and appends to the outreach log the risk engine reads.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import NotFoundError
from models import Gym, Member, MemberContact
from schemas import GymCreate, GymResponse, MemberContactCreate, MemberContactResponse, MemberResponse

router = APIRouter(prefix="/v1/gyms", tags=["gyms"])


def get_gym_or_404(db: Session, gym_id: UUID) -> Gym:
    gym = db.query(Gym).filter(Gym.id == gym_id).first()
    if gym is None:
        raise NotFoundError("Gym", str(gym_id))
    return gym


@router.post("", response_model=GymResponse, status_code=201)
def create_gym(body: GymCreate, db: Session = Depends(get_db)):
    gym = Gym(name=body.name.strip(), location=body.location)
    db.add(gym)
    db.commit()
    db.refresh(gym)
    return gym


@router.get("/{gym_id}", response_model=GymResponse)
def get_gym(gym_id: UUID, db: Session = Depends(get_db)):
    return get_gym_or_404(db, gym_id)


@router.get("/{gym_id}/members", response_model=List[MemberResponse])
def list_members(
    gym_id: UUID,
    status: Optional[str] = Query(default=None, pattern="^(active|cancelled)$"),
    db: Session = Depends(get_db),
):
    get_gym_or_404(db, gym_id)
    query = db.query(Member).filter(Member.gym_id == gym_id)
    if status:
        query = query.filter(Member.status == status)
    return query.order_by(Member.join_date.asc(), Member.name.asc()).all()


@router.post(
    "/{gym_id}/members/{member_id}/contacts",
    response_model=MemberContactResponse,
    status_code=201,
)
def log_member_contact(
    gym_id: UUID,
    member_id: UUID,
    body: MemberContactCreate,
    db: Session = Depends(get_db),
):
    member = db.query(Member).filter(Member.id == member_id, Member.gym_id == gym_id).first()
    if member is None:
        raise NotFoundError("Member", str(member_id))

    contact = MemberContact(
        member_id=member.id,
        gym_id=gym_id,
        contacted_at=body.contacted_at or datetime.now(timezone.utc),
        note=body.note,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact
