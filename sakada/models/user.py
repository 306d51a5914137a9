"""
Sakada Cash Advance - User Model

System accounts used for attribution: who approved an advance, who recorded
a payment, who performed an audited action.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from sakada.models.base import BaseModel, utcnow


class UserRole(str, Enum):
    """Roles allowed on a user account."""
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    EMPLOYEE = "EMPLOYEE"


class User(BaseModel):
    """
    User account.
    
    Users are deactivated through ``is_active`` rather than deleted, so
    approvals, payments and audit entries keep a valid attribution.
    """
    
    __tablename__ = "users"
    
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="user_role",
            native_enum=False,
            create_constraint=True,
            length=20,
        ),
        nullable=False,
    )
    access_level: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        comment="Numeric permission tier, finer grained than role",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    def __repr__(self) -> str:
        return f"<User(username={self.username}, role={self.role})>"
