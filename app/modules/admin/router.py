from typing import Any, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core import deps
from app.core.exceptions import ForbiddenError
from app.modules.auth import models as auth_models
from app.modules.auth import schemas as auth_schemas
from app.modules.auth.schemas import Principal
from app.modules.admin import schemas, service

router = APIRouter()

# Mounted at the API root: readable by anyone, used by the report form
public_router = APIRouter()

@public_router.get("/config/public", response_model=schemas.PublicConfigRead)
async def get_public_config(
    db: AsyncSession = Depends(get_db)
) -> Any:
    return service.public_config(await service.get_system_config(db))

@router.get("/config", response_model=schemas.SystemConfigRead)
async def get_config(
    principal: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.get_system_config(db)

@router.patch("/config", response_model=schemas.SystemConfigRead)
async def update_config(
    config_in: schemas.SystemConfigUpdate,
    principal: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.update_system_config(db, config_in.model_dump(exclude_unset=True), principal.id)

@router.get("/users", response_model=List[auth_schemas.UserRead])
async def list_users(
    role: Optional[auth_models.UserRole] = None,
    is_active: Optional[bool] = None,
    q: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    User directory (Admin; Supervisors read it for assignment).
    """
    if principal.role not in (auth_models.UserRole.ADMIN, auth_models.UserRole.SUPERVISOR):
        raise ForbiddenError("Admin or supervisor only")
    return await service.list_users(db, role=role, is_active=is_active, q=q, limit=limit)

@router.patch("/users/{user_id}", response_model=auth_schemas.UserRead)
async def update_user(
    user_id: UUID,
    user_in: schemas.UserUpdateAdmin,
    principal: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Change a user's role, active flag or name.
    """
    return await service.update_user(db, user_id, user_in, principal.id)

@router.get("/audit-logs", response_model=List[schemas.AuditLogRead])
async def get_audit_logs(
    limit: int = Query(50, ge=1, le=500),
    action: Optional[str] = None,
    principal: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.get_audit_logs(db, limit=limit, action=action)
