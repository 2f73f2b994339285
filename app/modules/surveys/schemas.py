from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field
from app.modules.reports.models import ReportCategory, ReportStatus

MAX_COMMENT_LENGTH = 500

class SurveySubmit(BaseModel):
    rating: int = Field(..., strict=True, ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=MAX_COMMENT_LENGTH)

class SurveyReportInfo(BaseModel):
    id: UUID
    category: ReportCategory
    address_text: Optional[str] = None
    status: ReportStatus

    class Config:
        from_attributes = True

class SurveyRead(BaseModel):
    report: SurveyReportInfo
    submitted_at: Optional[datetime] = None
    rating: Optional[int] = None
    comment: Optional[str] = None

class SurveySubmitted(BaseModel):
    submitted_at: datetime
