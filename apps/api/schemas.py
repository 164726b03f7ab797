from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, date
from uuid import UUID
from typing import Optional, List, Dict, Any


class GymCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    location: Optional[str] = None


class GymResponse(BaseModel):
    id: UUID
    created_at: datetime
    name: str
    location: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MemberResponse(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    status: str  # active | cancelled
    join_date: date
    cancel_date: Optional[date] = None
    monthly_rate: float
    source: str

    model_config = ConfigDict(from_attributes=True)


class MemberContactCreate(BaseModel):
    note: Optional[str] = Field(default=None, max_length=2000)
    contacted_at: Optional[datetime] = None


class MemberContactResponse(BaseModel):
    id: UUID
    member_id: UUID
    contacted_at: datetime
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# CSV import
# ---------------------------------------------------------------------------

class RowErrorResponse(BaseModel):
    row: int
    field: str
    message: str
    value: Optional[str] = None


class ImportPreviewRequest(BaseModel):
    csv_text: str
    # Partial override: canonical field -> column index (-1 to unmap).
    mapping: Optional[Dict[str, int]] = None
    filename: Optional[str] = None


class ValidationSummaryResponse(BaseModel):
    valid_rows: int
    error_rows: int
    error_count: int
    errors: List[RowErrorResponse]


class ImportPreviewResponse(BaseModel):
    headers: List[str]
    sample_rows: List[List[str]]
    total_rows: int
    mapping: Dict[str, int]
    confidence: Dict[str, str]  # high | medium | low | manual | unmapped
    validation: ValidationSummaryResponse
    file_hash: str
    duplicate_import: bool


class ImportCommitRequest(BaseModel):
    csv_text: str
    mapping: Dict[str, int]
    filename: Optional[str] = None


class ImportCommitResponse(BaseModel):
    import_id: Optional[UUID] = None
    total_rows: int
    imported: int
    updated: int
    skipped: int
    error_count: int
    errors: List[RowErrorResponse]
    duplicate_import: bool = False


class MemberImportResponse(BaseModel):
    id: UUID
    created_at: datetime
    filename: Optional[str] = None
    file_hash: str
    total_rows: int
    imported: int
    updated: int
    skipped: int
    error_count: int

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Metrics and report
# ---------------------------------------------------------------------------

class MonthlyMetricsResponse(BaseModel):
    month_start: date
    active_members: int
    active_start_of_month: int
    new_members: int
    cancels: int
    churn_rate: float
    rolling_churn_3m: Optional[float] = None
    mrr: float
    arm: float
    ltv: float
    rsi: int
    res: float
    ltve_impact: float
    member_risk_count: int

    model_config = ConfigDict(from_attributes=True)


class RecomputeResponse(BaseModel):
    months_computed: int


class MetricReportResponse(BaseModel):
    metric: str
    current: str
    target: str
    impact: str
    meaning: str
    why_it_matters: str
    action: str
    trend_direction: str
    trend_value: str


class RiskMemberResponse(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    join_date: date
    monthly_rate: float

    model_config = ConfigDict(from_attributes=True)


class GymReportResponse(BaseModel):
    month_start: date
    metrics: Optional[MonthlyMetricsResponse] = None
    reports: List[MetricReportResponse]
    risk_members: List[RiskMemberResponse]
    forecast: Dict[str, Any]


class GymTrendsResponse(BaseModel):
    months: int
    trend_intelligence: Dict[str, Any]
    forecast: Dict[str, Any]


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

class ChecklistItemState(BaseModel):
    item_id: str
    text: str
    checked: bool = False
    checked_at: Optional[datetime] = None
    note: Optional[str] = None


class RecommendationStateResponse(BaseModel):
    id: UUID
    period_start: date
    recommendation_type: str
    pillar: Optional[str] = None
    headline: str
    checklist: List[ChecklistItemState]
    total_items: int
    checked_items: int
    execution_strength: float
    execution_strength_threshold: float
    baseline_forecast: Optional[Dict[str, Any]] = None


class ChecklistToggleRequest(BaseModel):
    checked: bool
    note: Optional[str] = Field(default=None, max_length=2000)


class OwnerActionCreate(BaseModel):
    text: str = Field(..., max_length=2000)
    period_start: Optional[date] = None


class OwnerActionResponse(BaseModel):
    id: UUID
    period_start: date
    text: str
    classification_type: Optional[str] = None
    classification_confidence: float
    classification_status: str

    model_config = ConfigDict(from_attributes=True)


class LearningRunResponse(BaseModel):
    updated: int


# ---------------------------------------------------------------------------
# Wodify
# ---------------------------------------------------------------------------

class WodifyConnectRequest(BaseModel):
    api_key: str = Field(..., min_length=8)


class WodifyConnectionResponse(BaseModel):
    connected: bool
    status: Optional[str] = None
    api_key_fingerprint: Optional[str] = None
    location_name: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error_at: Optional[datetime] = None
    last_error_message: Optional[str] = None


class WodifySyncRunResponse(BaseModel):
    id: UUID
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: str
    clients_fetched: int
    imported: int
    updated: int
    skipped: int
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class WodifySyncQueuedResponse(BaseModel):
    queued: bool
    task_id: Optional[str] = None
