from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey, Numeric, Text, Index, UniqueConstraint, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid

# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Gym(Base):
    __tablename__ = "gym"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    name = Column(Text, nullable=False)
    location = Column(Text, nullable=True)

    members = relationship("Member", back_populates="gym")


class Member(Base):
    """
    A roster entry. Created or updated by CSV import and Wodify sync, never
    physically deleted.

    Email is the dedup key: (gym_id, email) is unique, NULL emails are not
    matched against anything so every email-less import row is a new member.
    """

    __tablename__ = "member"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    # 'active' | 'cancelled'
    status = Column(Text, nullable=False, default="active")
    join_date = Column(Date, nullable=False)
    cancel_date = Column(Date, nullable=True)
    monthly_rate = Column(Numeric(10, 2), nullable=False, default=0)
    # 'csv' | 'wodify' | 'manual'
    source = Column(Text, nullable=False, default="csv")

    gym = relationship("Gym", back_populates="members")
    contacts = relationship("MemberContact", back_populates="member", order_by="MemberContact.contacted_at")

    __table_args__ = (
        UniqueConstraint("gym_id", "email", name="uq_member_gym_email"),
        Index("ix_member_gym_status", "gym_id", "status"),
    )


class MemberContact(Base):
    """Append-only log of staff outreach to a member."""

    __tablename__ = "member_contact"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid, ForeignKey("member.id"), nullable=False, index=True)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, index=True)
    contacted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    note = Column(Text, nullable=True)

    member = relationship("Member", back_populates="contacts")


class GymMonthlyMetrics(Base):
    """Derived monthly snapshot. Recomputation overwrites the row in place."""

    __tablename__ = "gym_monthly_metrics"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, index=True)
    month_start = Column(Date, nullable=False)
    computed_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    active_members = Column(Integer, nullable=False, default=0)
    active_start_of_month = Column(Integer, nullable=False, default=0)
    new_members = Column(Integer, nullable=False, default=0)
    cancels = Column(Integer, nullable=False, default=0)
    churn_rate = Column(Numeric(6, 2), nullable=False, default=0)
    rolling_churn_3m = Column(Numeric(6, 2), nullable=True)
    mrr = Column(Numeric(12, 2), nullable=False, default=0)
    arm = Column(Numeric(10, 2), nullable=False, default=0)
    ltv = Column(Numeric(12, 2), nullable=False, default=0)
    rsi = Column(Integer, nullable=False, default=0)
    res = Column(Numeric(5, 1), nullable=False, default=0)
    ltve_impact = Column(Numeric(12, 2), nullable=False, default=0)
    member_risk_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("gym_id", "month_start", name="uq_gym_monthly_metrics_gym_month"),
    )


class MemberImport(Base):
    """
    One committed CSV import.

    file_hash is the fast non-cryptographic content hash used for the
    "you already imported this file" warning; it is never used to reject.
    """

    __tablename__ = "member_import"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    filename = Column(Text, nullable=True)
    file_hash = Column(Text, nullable=False, index=True)
    total_rows = Column(Integer, nullable=False, default=0)
    imported = Column(Integer, nullable=False, default=0)
    updated = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    # Bounded sample (first 200 row errors).
    errors = Column(JSONType, nullable=False, default=list)
    column_mapping = Column(JSONType, nullable=False, default=dict)


class RecommendationCard(Base):
    """Snapshot of a gym-wide recommendation, its checklist and baseline forecast."""

    __tablename__ = "recommendation_card"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    generated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    recommendation_type = Column(Text, nullable=False)
    pillar = Column(Text, nullable=True)
    headline = Column(Text, nullable=False)
    # [{"item_id": str, "text": str}]
    checklist_items = Column(JSONType, nullable=False, default=list)
    # {"baseline_members": int, "baseline_mrr": float, "baseline_churn": float}
    baseline_forecast = Column(JSONType, nullable=True)
    execution_strength_threshold = Column(Numeric(4, 2), nullable=False, default=0.6)

    completions = relationship("ChecklistItemCompletion", back_populates="card")

    __table_args__ = (
        Index("ix_recommendation_card_gym_period", "gym_id", "period_start"),
    )


class ChecklistItemCompletion(Base):
    __tablename__ = "checklist_item_completion"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recommendation_id = Column(Uuid, ForeignKey("recommendation_card.id"), nullable=False, index=True)
    item_id = Column(Text, nullable=False)
    checked = Column(Boolean, nullable=False, default=False)
    checked_at = Column(DateTime(timezone=True), nullable=False)
    note = Column(Text, nullable=True)

    card = relationship("RecommendationCard", back_populates="completions")

    __table_args__ = (
        UniqueConstraint("recommendation_id", "item_id", name="uq_checklist_item_completion"),
    )


class RecommendationLearningEvent(Base):
    """One evaluation of one card at one horizon (30/60/90 days)."""

    __tablename__ = "recommendation_learning_event"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recommendation_id = Column(Uuid, ForeignKey("recommendation_card.id"), nullable=False, index=True)
    recommendation_type = Column(Text, nullable=False)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, index=True)
    evaluation_window_days = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    execution_strength = Column(Numeric(4, 3), nullable=False)
    overlap_weight = Column(Numeric(4, 2), nullable=False)
    impact_score = Column(Numeric(14, 4), nullable=False)
    delta_members = Column(Integer, nullable=False)
    delta_mrr = Column(Numeric(12, 2), nullable=False)
    delta_churn = Column(Numeric(6, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("recommendation_id", "evaluation_window_days", name="uq_learning_event_card_window"),
    )


class RecommendationLearningStat(Base):
    """
    Exponentially smoothed impact estimate per intervention type.

    gym_id NULL is the cross-gym (global) row.
    """

    __tablename__ = "recommendation_learning_stat"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recommendation_type = Column(Text, nullable=False, index=True)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=True, index=True)
    expected_impact = Column(Numeric(14, 4), nullable=False, default=0)
    confidence = Column(Numeric(4, 3), nullable=False, default=0)
    sample_size = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("recommendation_type", "gym_id", name="uq_learning_stat_type_gym"),
    )


class OwnerAdditionalAction(Base):
    """Free-text action an owner logged outside the generated checklists."""

    __tablename__ = "owner_additional_action"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    text = Column(Text, nullable=False)
    classification_type = Column(Text, nullable=True)
    classification_confidence = Column(Numeric(4, 3), nullable=False, default=0)
    # 'classified' | 'unclassified' | 'rejected'
    classification_status = Column(Text, nullable=False)


class WodifyConnection(Base):
    """Per-gym Wodify credentials. The API key is stored Fernet-encrypted."""

    __tablename__ = "wodify_connection"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    api_key_encrypted = Column(Text, nullable=False)
    api_key_fingerprint = Column(Text, nullable=False)
    location_name = Column(Text, nullable=True)
    # 'connected' | 'error' | 'disconnected'
    status = Column(Text, nullable=False, default="connected")
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_success_at = Column(DateTime(timezone=True), nullable=True)
    last_error_at = Column(DateTime(timezone=True), nullable=True)
    last_error_message = Column(Text, nullable=True)


class WodifySyncRun(Base):
    __tablename__ = "wodify_sync_run"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id = Column(Uuid, ForeignKey("gym.id"), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    # 'running' | 'success' | 'error'
    status = Column(Text, nullable=False, default="running")
    clients_fetched = Column(Integer, nullable=False, default=0)
    imported = Column(Integer, nullable=False, default=0)
    updated = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)
