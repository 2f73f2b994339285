import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Enum, Uuid, func
from app.core.db import Base, utcnow
import enum

class UserRole(str, enum.Enum):
    CITIZEN = "CITIZEN"
    OPERATOR = "OPERATOR"
    SUPERVISOR = "SUPERVISOR"
    ADMIN = "ADMIN"

class AuthMode(str, enum.Enum):
    PASSWORD = "PASSWORD"
    GUEST = "GUEST" # Created from an e-mail alone when reporting anonymously

STAFF_ROLES = frozenset({UserRole.OPERATOR, UserRole.SUPERVISOR, UserRole.ADMIN})

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CITIZEN, nullable=False)
    auth_mode = Column(Enum(AuthMode), default=AuthMode.PASSWORD, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
