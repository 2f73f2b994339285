from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional, Dict, Any, List
from app.modules.auth.models import UserRole

class AuditLogRead(BaseModel):
    id: UUID
    user_id: Optional[UUID]
    action: str
    target_type: Optional[str]
    target_id: Optional[str]
    ip_address: Optional[str]
    created_at: datetime
    metadata_json: Optional[Dict[str, Any]]

    class Config:
        from_attributes = True

class SystemConfigRead(BaseModel):
    report_categories: List[str]
    districts: List[str]
    notification_events: List[str]
    photo_max_files: int
    photo_max_mb: int
    map_max_points: int

class PublicConfigRead(BaseModel):
    report_categories: List[str]
    districts: List[str]
    photo_max_files: int
    photo_max_mb: int
    map_max_points: int

class SystemConfigUpdate(BaseModel):
    """Partial update; ranges and membership are checked by the service."""
    report_categories: Optional[List[str]] = None
    districts: Optional[List[str]] = None
    notification_events: Optional[List[str]] = None
    photo_max_files: Optional[int] = None
    photo_max_mb: Optional[int] = None
    map_max_points: Optional[int] = None

class UserUpdateAdmin(BaseModel):
    full_name: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
