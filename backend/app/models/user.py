from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, UniqueConstraint, func
from app.db.base import Base


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    MEMBER = "MEMBER"
    REPRESENTATIVE = "REPRESENTATIVE"
    SUPERADMIN = "SUPERADMIN"


ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPERADMIN)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(120), nullable=False, default="")
    lastname = Column(String(120), nullable=False, default="")
    avatar = Column(String(500), nullable=False, default="")
    role = Column(Enum(UserRole, native_enum=False, length=20), nullable=False, default=UserRole.USER)
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)

    # Written by the two-factor verification flow; read here only.
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    two_factor_verified = Column(Boolean, nullable=False, default=False)
    last_two_factor_verification = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    def public_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "lastname": self.lastname,
            "avatar": self.avatar or "",
            "role": self.role.value if isinstance(self.role, UserRole) else self.role,
            "twoFactorEnabled": bool(self.two_factor_enabled),
        }
