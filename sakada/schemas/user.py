"""
Sakada Cash Advance - User Schemas
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from sakada.models.user import UserRole


class UserCreate(BaseModel):
    """Schema for creating a user account."""
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    role: UserRole = UserRole.EMPLOYEE
    access_level: int = Field(default=1, ge=1, le=10)


class UserResponse(BaseModel):
    """Schema for user response. Never exposes the password hash."""
    id: UUID
    username: str
    email: str
    role: UserRole
    access_level: int
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None
    
    model_config = ConfigDict(from_attributes=True)
