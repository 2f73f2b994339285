from typing import Optional
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.core.db import get_db
from app.core import security
from app.core.exceptions import ForbiddenError
from app.modules.auth.models import User
from app.modules.auth.schemas import Principal

# auto_error=False so anonymous callers (guest reporters, surveys, public map) pass through
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/token", auto_error=False)

credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

async def _load_user(db: AsyncSession, token: str) -> Optional[User]:
    payload = security.decode_access_token(token)
    if not payload:
        return None
    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        return None
    return await db.get(User, user_id)

async def get_current_principal_optional(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> Optional[Principal]:
    """
    Resolve the acting principal if a valid bearer token was sent.
    Invalid or inactive identities resolve to None (treated as anonymous).
    """
    if not token:
        return None
    user = await _load_user(db, token)
    if user is None or not user.is_active:
        return None
    return Principal(id=user.id, role=user.role, email=user.email)

async def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> Principal:
    if not token:
        raise credentials_exception

    user = await _load_user(db, token)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return Principal(id=user.id, role=user.role, email=user.email)

async def require_staff(
    principal: Principal = Depends(get_current_principal)
) -> Principal:
    if not principal.is_staff:
        raise ForbiddenError("Staff only")
    return principal

async def require_admin(
    principal: Principal = Depends(get_current_principal)
) -> Principal:
    if not principal.is_admin:
        raise ForbiddenError("Admin only")
    return principal
