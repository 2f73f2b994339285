import uuid
from sqlalchemy import Column, String, ForeignKey, Text, DateTime, Integer, Uuid, func
from app.core.db import Base, utcnow

class ReportSurvey(Base):
    """Satisfaction survey sent once per report when it is first closed."""
    __tablename__ = "report_surveys"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid(as_uuid=True), ForeignKey("reports.id"), nullable=False, unique=True)
    token = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False) # Snapshot at dispatch time

    rating = Column(Integer, nullable=True) # 1..5
    comment = Column(Text, nullable=True) # <= 500 chars
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
