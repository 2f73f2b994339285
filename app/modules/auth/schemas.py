from datetime import datetime
from typing import Optional
from pydantic import BaseModel
from dataclasses import dataclass
from app.modules.auth.models import UserRole, AuthMode, STAFF_ROLES
from uuid import UUID

@dataclass(frozen=True)
class Principal:
    """The acting identity behind a request, however it was resolved."""
    id: UUID
    role: UserRole
    email: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

class UserRead(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    role: UserRole
    auth_mode: AuthMode
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserSummary(BaseModel):
    id: UUID
    email: str
    role: UserRole

    class Config:
        from_attributes = True
