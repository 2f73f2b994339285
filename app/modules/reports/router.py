from typing import Any, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, UploadFile, File, Form, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core import deps
from app.modules.auth.schemas import Principal
from app.modules.reports import schemas, service
from app.modules.reports.models import ReportCategory, ReportStatus, PriorityLevel, EvidenceType

router = APIRouter()

@router.post("", response_model=schemas.ReportCreated, status_code=status.HTTP_201_CREATED)
async def create_report(
    report_in: schemas.ReportCreate,
    principal: Optional[Principal] = Depends(deps.get_current_principal_optional),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Submit a new report. Anonymous callers must send reporter_email.
    """
    return await service.create_report(db, report_in, principal)

@router.get("/mine", response_model=schemas.MyReportsResponse)
async def list_my_reports(
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return {"items": await service.list_my_reports(db, principal)}

@router.get("/lookup", response_model=schemas.ReportDetail)
async def lookup_report(
    report_id: UUID,
    email: str,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Anonymous tracking: report id plus the e-mail it was filed with.
    """
    return await service.lookup_report(db, report_id, email)

@router.get("/map", response_model=schemas.MapResponse)
async def list_map_points(
    min_lng: float,
    min_lat: float,
    max_lng: float,
    max_lat: float,
    category: Optional[ReportCategory] = None,
    status: Optional[ReportStatus] = None,
    priority: Optional[PriorityLevel] = None,
    limit: Optional[int] = None,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Public map: reports inside a bounding box.
    """
    return await service.list_map_points(
        db, min_lng, min_lat, max_lng, max_lat,
        category=category, status=status, priority=priority, limit=limit
    )

@router.get("/{report_id}", response_model=schemas.ReportDetail)
async def get_report(
    report_id: UUID,
    email: Optional[str] = None,
    principal: Optional[Principal] = Depends(deps.get_current_principal_optional),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.get_report(db, report_id, principal, email)

@router.post("/{report_id}/photos", response_model=schemas.PhotosResponse)
async def upload_photos(
    report_id: UUID,
    photos: List[UploadFile] = File(...),
    email: Optional[str] = Query(None),
    principal: Optional[Principal] = Depends(deps.get_current_principal_optional),
    db: AsyncSession = Depends(get_db)
) -> Any:
    report = await service.upload_photos(db, report_id, photos, principal, email)
    return {"id": report.id, "photo_urls": report.photo_urls}

@router.patch("/{report_id}/status", response_model=schemas.ReportDetail)
async def update_status(
    report_id: UUID,
    status_in: schemas.StatusUpdate,
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.change_status(db, report_id, status_in.status, principal, status_in.note)

@router.patch("/{report_id}/triage", response_model=schemas.ReportDetail)
async def update_triage(
    report_id: UUID,
    triage_in: schemas.TriageUpdate,
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.set_triage(
        db, report_id, triage_in.impact, triage_in.urgency, triage_in.priority_override, principal
    )

@router.patch("/{report_id}/assignment", response_model=schemas.ReportDetail)
async def update_assignment(
    report_id: UUID,
    assignment_in: schemas.AssignmentUpdate,
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.assign(db, report_id, assignment_in.assignee_id, principal, assignment_in.note)

@router.patch("/{report_id}/schedule", response_model=schemas.ReportDetail)
async def update_schedule(
    report_id: UUID,
    schedule_in: schemas.ScheduleUpdate,
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.schedule(
        db, report_id, schedule_in.scheduled_at, principal,
        sla_hours=schedule_in.sla_hours,
        sla_target_at=schedule_in.sla_target_at,
        note=schedule_in.note
    )

@router.patch("/{report_id}/district", response_model=schemas.ReportDetail)
async def update_district(
    report_id: UUID,
    district_in: schemas.DistrictUpdate,
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.update_district(db, report_id, district_in.district, principal, district_in.note)

@router.post("/{report_id}/comments", response_model=schemas.ReportEventRead, status_code=status.HTTP_201_CREATED)
async def add_comment(
    report_id: UUID,
    comment_in: schemas.CommentCreate,
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.add_comment(db, report_id, comment_in.note, principal)

@router.post("/{report_id}/evidence", response_model=List[schemas.ReportEvidenceRead], status_code=status.HTTP_201_CREATED)
async def add_evidence(
    report_id: UUID,
    type: EvidenceType = Form(...),
    note: Optional[str] = Form(None),
    files: List[UploadFile] = File(...),
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.add_evidence(db, report_id, type, files, principal, note)

@router.get("/{report_id}/evidence", response_model=List[schemas.ReportEvidenceRead])
async def list_evidence(
    report_id: UUID,
    type: Optional[EvidenceType] = None,
    email: Optional[str] = None,
    principal: Optional[Principal] = Depends(deps.get_current_principal_optional),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Staff and the owner; anonymous reporters pass the e-mail they filed with.
    """
    return await service.list_evidence(db, report_id, principal, type, email)

@router.get("/{report_id}/events", response_model=List[schemas.ReportEventRead])
async def list_events(
    report_id: UUID,
    email: Optional[str] = None,
    principal: Optional[Principal] = Depends(deps.get_current_principal_optional),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.list_events(db, report_id, principal, email)
