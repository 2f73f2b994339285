from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
import uuid

from app.core.db import Base, utcnow

JSONType = JSON().with_variant(JSONB(), "postgresql")

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True) # Acting admin, null for system actions

    action = Column(String, nullable=False) # e.g. "admin.user.update", "admin.config.update"
    target_type = Column(String, nullable=True) # e.g. "user", "config"
    target_id = Column(String, nullable=True) # UUID as string

    metadata_json = Column(JSONType, nullable=True) # Extra details
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)

class SystemSetting(Base):
    """One row per configuration key; the value is stored as JSON."""
    __tablename__ = "admin_settings"

    key = Column(String, primary_key=True)
    value = Column(JSONType, nullable=True)
    description = Column(String, nullable=True)
    updated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
