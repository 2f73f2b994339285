import uuid
import enum
from sqlalchemy import Column, String, Enum, ForeignKey, Text, DateTime, Float, Integer, JSON, Uuid, Index, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from app.core.db import Base, utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

class ReportCategory(str, enum.Enum):
    POTHOLE = "POTHOLE"
    STREETLIGHT = "STREETLIGHT"
    SIDEWALK = "SIDEWALK"
    DRAINAGE = "DRAINAGE"

class ReportStatus(str, enum.Enum):
    RECEIVED = "RECEIVED"
    VERIFIED = "VERIFIED"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"

class PriorityLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

class ReportEventType(str, enum.Enum):
    REPORT_CREATED = "REPORT_CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    TRIAGE_UPDATED = "TRIAGE_UPDATED"
    EVIDENCE_ADDED = "EVIDENCE_ADDED"
    ASSIGNED = "ASSIGNED"
    SCHEDULED = "SCHEDULED"
    DISTRICT_UPDATED = "DISTRICT_UPDATED"
    COMMENT = "COMMENT"

class EvidenceType(str, enum.Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"
    INTERVENTION = "INTERVENTION"

class Report(Base):
    __tablename__ = "reports"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    category = Column(Enum(ReportCategory), nullable=False, index=True)
    description = Column(Text, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address_text = Column(String, nullable=True)
    district = Column(String, nullable=True)
    photo_urls = Column(JSONType, default=list, nullable=False)

    status = Column(Enum(ReportStatus), default=ReportStatus.RECEIVED, nullable=False, index=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)

    assigned_to = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    assigned_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    sla_target_at = Column(DateTime(timezone=True), nullable=True)
    sla_breached_at = Column(DateTime(timezone=True), nullable=True)

    impact = Column(Integer, nullable=True) # 1..5
    urgency = Column(Integer, nullable=True) # 1..5
    priority = Column(Enum(PriorityLevel), nullable=True)
    priority_override = Column(Enum(PriorityLevel), nullable=True)
    priority_updated_at = Column(DateTime(timezone=True), nullable=True)
    priority_updated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    # Optimistic concurrency: a write based on a stale read fails instead of overwriting
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    status_history = relationship(
        "ReportStatusEntry",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportStatusEntry.position",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_reports_lat_lng", "latitude", "longitude"),)
    __mapper_args__ = {"version_id_col": version}

    @property
    def effective_priority(self):
        return self.priority_override or self.priority

class ReportStatusEntry(Base):
    __tablename__ = "report_status_history"
    __table_args__ = (UniqueConstraint("report_id", "position", name="uq_report_status_history_position"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid(as_uuid=True), ForeignKey("reports.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False) # 0-based, strictly increasing per report

    status = Column(Enum(ReportStatus), nullable=False)
    at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    note = Column(Text, nullable=True)

    report = relationship("Report", back_populates="status_history")

class ReportEvent(Base):
    __tablename__ = "report_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid(as_uuid=True), ForeignKey("reports.id"), nullable=False, index=True)

    type = Column(Enum(ReportEventType), nullable=False)
    note = Column(Text, nullable=True)
    data = Column(JSONType, nullable=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

class ReportEvidence(Base):
    __tablename__ = "report_evidence"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid(as_uuid=True), ForeignKey("reports.id"), nullable=False, index=True)

    type = Column(Enum(EvidenceType), nullable=False)
    url = Column(String, nullable=False)
    note = Column(Text, nullable=True)
    uploaded_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
