import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.modules.auth import models as auth_models
from app.modules.admin.models import AuditLog, SystemSetting
from app.modules.notifications.templates import CONFIGURABLE_EVENTS
from app.modules.reports.models import ReportCategory
from uuid import UUID
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

# (min, max) for the numeric configuration keys
INT_LIMITS = {
    "photo_max_files": (1, 10),
    "photo_max_mb": (1, 10),
    "map_max_points": (100, 5000),
}

async def create_audit_log(
    db: AsyncSession,
    action: str,
    user_id: Optional[UUID] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
):
    """
    Record an administrative action.
    Commits, so any change the caller staged on the session is saved together with its log entry.
    """
    log = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id else None,
        metadata_json=metadata,
        ip_address=ip_address
    )
    db.add(log)
    await db.commit()
    return log

async def get_audit_logs(db: AsyncSession, limit: int = 50, action: Optional[str] = None):
    query = select(AuditLog)
    if action:
        query = query.where(AuditLog.action == action)
    result = await db.execute(query.order_by(AuditLog.created_at.desc()).limit(limit))
    return result.scalars().all()

# --- Configuration store ---

def config_defaults() -> Dict[str, Any]:
    return {
        "report_categories": [c.value for c in ReportCategory],
        "districts": list(settings.DEFAULT_DISTRICTS),
        "notification_events": [e.value for e in CONFIGURABLE_EVENTS],
        "photo_max_files": settings.DEFAULT_PHOTO_MAX_FILES,
        "photo_max_mb": settings.DEFAULT_PHOTO_MAX_MB,
        "map_max_points": settings.DEFAULT_MAP_MAX_POINTS,
    }

async def get_system_config(db: AsyncSession) -> Dict[str, Any]:
    """Stored values layered over the defaults; unknown keys are ignored."""
    config = config_defaults()
    result = await db.execute(select(SystemSetting).where(SystemSetting.key.in_(list(config.keys()))))
    for setting in result.scalars().all():
        if setting.value is not None:
            config[setting.key] = setting.value
    return config

def _validate_enum_list(key: str, values: Any, allowed: List[str], allow_empty: bool) -> List[str]:
    if not isinstance(values, list):
        raise ValidationError(f"{key} must be a list")
    if not values and not allow_empty:
        raise ValidationError(f"{key} must not be empty")
    cleaned = []
    for value in values:
        value = getattr(value, "value", value)
        if value not in allowed:
            raise ValidationError(f"{key}: unknown value {value!r}")
        if value not in cleaned:
            cleaned.append(value)
    return cleaned

def validate_config_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Check a partial configuration update and return it normalized. Raises ValidationError."""
    validated = {}
    for key, value in patch.items():
        if value is None:
            raise ValidationError(f"{key} cannot be null")

        if key == "report_categories":
            validated[key] = _validate_enum_list(key, value, [c.value for c in ReportCategory], allow_empty=False)
        elif key == "notification_events":
            validated[key] = _validate_enum_list(key, value, [e.value for e in CONFIGURABLE_EVENTS], allow_empty=True)
        elif key == "districts":
            if not isinstance(value, list):
                raise ValidationError("districts must be a list")
            names = [str(d).strip() for d in value]
            if any(not name for name in names):
                raise ValidationError("districts must not contain blank names")
            if len({name.lower() for name in names}) != len(names):
                raise ValidationError("districts must be unique")
            validated[key] = names
        elif key in INT_LIMITS:
            low, high = INT_LIMITS[key]
            if isinstance(value, bool) or not isinstance(value, int) or not (low <= value <= high):
                raise ValidationError(f"{key} must be an integer between {low} and {high}")
            validated[key] = value
        else:
            raise ValidationError(f"Unknown configuration key: {key}")
    return validated

async def update_system_config(db: AsyncSession, patch: Dict[str, Any], current_admin_id: UUID) -> Dict[str, Any]:
    validated = validate_config_patch(patch)
    if not validated:
        return await get_system_config(db)

    current = await get_system_config(db)
    result = await db.execute(select(SystemSetting).where(SystemSetting.key.in_(list(validated.keys()))))
    existing = {s.key: s for s in result.scalars().all()}

    changes = {}
    for key, value in validated.items():
        if current.get(key) == value:
            continue
        setting = existing.get(key)
        if setting is None:
            db.add(SystemSetting(key=key, value=value, updated_by=current_admin_id))
        else:
            setting.value = value
            setting.updated_by = current_admin_id
        changes[key] = {"old": current.get(key), "new": value}

    if changes:
        await create_audit_log(
            db,
            action="admin.config.update",
            user_id=current_admin_id,
            target_type="config",
            metadata={"changes": changes}
        )
        logger.info(f"[Admin] Configuration updated by {current_admin_id}: {list(changes.keys())}")

    return await get_system_config(db)

def public_config(config: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "report_categories": config["report_categories"],
        "districts": config["districts"],
        "photo_max_files": config["photo_max_files"],
        "photo_max_mb": config["photo_max_mb"],
        "map_max_points": config["map_max_points"],
    }

# --- Users ---

async def list_users(
    db: AsyncSession,
    role: Optional[auth_models.UserRole] = None,
    is_active: Optional[bool] = None,
    q: Optional[str] = None,
    limit: int = 100
):
    query = select(auth_models.User)
    if role is not None:
        query = query.where(auth_models.User.role == role)
    if is_active is not None:
        query = query.where(auth_models.User.is_active == is_active)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.where(or_(
            auth_models.User.email.ilike(pattern),
            auth_models.User.full_name.ilike(pattern),
        ))
    result = await db.execute(query.order_by(auth_models.User.created_at.desc()).limit(limit))
    return result.scalars().all()

async def count_active_admins(db: AsyncSession, exclude_id: Optional[UUID] = None) -> int:
    query = select(func.count(auth_models.User.id)).where(
        auth_models.User.role == auth_models.UserRole.ADMIN,
        auth_models.User.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.where(auth_models.User.id != exclude_id)
    result = await db.execute(query)
    return result.scalar() or 0

def _plain(value):
    return getattr(value, "value", value)

async def update_user(db: AsyncSession, user_id: UUID, user_in: Any, current_admin_id: UUID) -> auth_models.User:
    user = await db.get(auth_models.User, user_id)
    if not user:
        raise NotFoundError("User not found")

    update_data = user_in.model_dump(exclude_unset=True)
    next_role = update_data.get("role") or user.role
    next_active = update_data.get("is_active", user.is_active)
    if next_active is None:
        next_active = user.is_active

    if user.id == current_admin_id and next_active is False:
        raise ValidationError("You cannot deactivate your own account")

    removing_admin = user.role == auth_models.UserRole.ADMIN and (
        next_role != auth_models.UserRole.ADMIN or not next_active
    )
    if removing_admin and user.is_active and await count_active_admins(db, exclude_id=user.id) == 0:
        raise ValidationError("Cannot remove or deactivate the last active ADMIN")

    # Track changes for audit
    changes = {}
    for field in ("full_name", "role", "is_active"):
        if field not in update_data or update_data[field] is None:
            continue
        value = update_data[field]
        if field == "full_name":
            value = value.strip() or None
        old_val = getattr(user, field)
        if old_val != value:
            setattr(user, field, value)
            changes[field] = {"old": _plain(old_val), "new": _plain(value)}

    if changes:
        await create_audit_log(
            db,
            action="admin.user.update",
            user_id=current_admin_id,
            target_type="user",
            target_id=str(user.id),
            metadata={"changes": changes}
        )
        await db.refresh(user)

    return user
