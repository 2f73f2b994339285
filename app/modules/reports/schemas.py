from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from app.modules.reports.models import (
    ReportCategory, ReportStatus, PriorityLevel, ReportEventType, EvidenceType,
)

MIN_DESCRIPTION_LENGTH = 10
MAX_NOTE_LENGTH = 1000

# --- Input ---

class LocationIn(BaseModel):
    """Accepts either {lat, lng} or GeoJSON-style {coordinates: [lng, lat]}."""
    lat: Optional[float] = None
    lng: Optional[float] = None
    coordinates: Optional[List[float]] = None

    @model_validator(mode="after")
    def resolve_point(self):
        if self.coordinates is not None:
            if len(self.coordinates) != 2:
                raise ValueError("coordinates must be [lng, lat]")
            self.lng, self.lat = self.coordinates
        if self.lat is None or self.lng is None:
            raise ValueError("location requires lat and lng")
        if not (-90 <= self.lat <= 90) or not (-180 <= self.lng <= 180):
            raise ValueError("coordinates out of range")
        return self

class ReportCreate(BaseModel):
    category: ReportCategory
    description: str
    location: LocationIn
    address_text: Optional[str] = Field(default=None, max_length=300)
    district: Optional[str] = None
    reporter_email: Optional[EmailStr] = None # Required when not authenticated

    @field_validator("description")
    @classmethod
    def description_min_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_DESCRIPTION_LENGTH:
            raise ValueError(f"description must have at least {MIN_DESCRIPTION_LENGTH} characters")
        return v

class StatusUpdate(BaseModel):
    status: ReportStatus
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LENGTH)

class TriageUpdate(BaseModel):
    impact: int = Field(..., strict=True, ge=1, le=5)
    urgency: int = Field(..., strict=True, ge=1, le=5)
    priority_override: Optional[PriorityLevel] = None # null (or omitted) clears the override

class AssignmentUpdate(BaseModel):
    assignee_id: Optional[UUID] = None # null unassigns
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LENGTH)

class ScheduleUpdate(BaseModel):
    scheduled_at: datetime
    sla_hours: Optional[float] = Field(default=None, gt=0)
    sla_target_at: Optional[datetime] = None # wins over sla_hours
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LENGTH)

class DistrictUpdate(BaseModel):
    district: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LENGTH)

class CommentCreate(BaseModel):
    note: str = Field(..., max_length=MAX_NOTE_LENGTH)

    @field_validator("note")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("note must not be empty")
        return v

# --- Output ---

class StatusEntryRead(BaseModel):
    status: ReportStatus
    at: datetime
    by: Optional[UUID] = None
    note: Optional[str] = None

    class Config:
        from_attributes = True

class ReportCreated(BaseModel):
    id: UUID
    status: ReportStatus
    created_at: datetime

    class Config:
        from_attributes = True

class ReportDetail(BaseModel):
    id: UUID
    category: ReportCategory
    description: str
    latitude: float
    longitude: float
    address_text: Optional[str] = None
    district: Optional[str] = None
    photo_urls: List[str] = []
    status: ReportStatus
    status_history: List[StatusEntryRead] = []
    created_by: Optional[UUID] = None
    created_at: datetime

    impact: Optional[int] = None
    urgency: Optional[int] = None
    priority: Optional[PriorityLevel] = None
    priority_override: Optional[PriorityLevel] = None
    effective_priority: Optional[PriorityLevel] = None
    priority_updated_at: Optional[datetime] = None

    assigned_to: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[UUID] = None
    scheduled_at: Optional[datetime] = None
    sla_target_at: Optional[datetime] = None
    sla_breached_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ReportSummary(BaseModel):
    id: UUID
    category: ReportCategory
    description: str
    status: ReportStatus
    address_text: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class MyReportsResponse(BaseModel):
    items: List[ReportSummary]

class AdminReportItem(BaseModel):
    id: UUID
    category: ReportCategory
    status: ReportStatus
    address_text: Optional[str] = None
    district: Optional[str] = None
    latitude: float
    longitude: float
    impact: Optional[int] = None
    urgency: Optional[int] = None
    priority: Optional[PriorityLevel] = None
    priority_override: Optional[PriorityLevel] = None
    effective_priority: Optional[PriorityLevel] = None
    assigned_to: Optional[UUID] = None
    sla_breached_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class AdminReportListResponse(BaseModel):
    items: List[AdminReportItem]
    total: int
    page: int
    size: int
    pages: int

class MapPoint(BaseModel):
    id: UUID
    category: ReportCategory
    status: ReportStatus
    lat: float
    lng: float
    created_at: datetime
    effective_priority: Optional[PriorityLevel] = None
    address_text: Optional[str] = None # admin map only

class MapResponse(BaseModel):
    items: List[MapPoint]
    count: int

class PhotosResponse(BaseModel):
    id: UUID
    photo_urls: List[str]

class ReportEventRead(BaseModel):
    id: UUID
    report_id: UUID
    type: ReportEventType
    note: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    created_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True

class ReportEvidenceRead(BaseModel):
    id: UUID
    report_id: UUID
    type: EvidenceType
    url: str
    note: Optional[str] = None
    uploaded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True

class MetricsTotals(BaseModel):
    all: int
    open: int
    closed: int

class MetricsSummary(BaseModel):
    totals: MetricsTotals
    by_status: Dict[str, int]
    by_category: Dict[str, int]
    mtta_hours_avg: Optional[float] = None # RECEIVED -> first VERIFIED
    mttr_hours_avg: Optional[float] = None # RECEIVED -> first CLOSED
