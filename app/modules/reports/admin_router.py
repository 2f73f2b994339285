from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core import deps
from app.modules.auth.schemas import Principal
from app.modules.reports import schemas, service
from app.modules.reports.models import ReportCategory, ReportStatus, PriorityLevel

router = APIRouter()

@router.get("/reports", response_model=schemas.AdminReportListResponse)
async def list_reports(
    status: Optional[ReportStatus] = None,
    category: Optional[ReportCategory] = None,
    q: Optional[str] = None,
    priority: Optional[PriorityLevel] = None,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Staff inbox. `priority` filters on the effective priority.
    """
    return await service.list_reports_admin(
        db, status=status, category=category, q=q, priority=priority, page=page, size=size
    )

@router.get("/reports/map", response_model=schemas.MapResponse)
async def list_map_points(
    min_lng: float,
    min_lat: float,
    max_lng: float,
    max_lat: float,
    category: Optional[ReportCategory] = None,
    status: Optional[ReportStatus] = None,
    priority: Optional[PriorityLevel] = None,
    limit: Optional[int] = None,
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.list_map_points(
        db, min_lng, min_lat, max_lng, max_lat,
        category=category, status=status, priority=priority, limit=limit,
        include_address=True
    )

@router.get("/metrics/summary", response_model=schemas.MetricsSummary)
async def get_metrics_summary(
    principal: Principal = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.get_metrics_summary(db)
