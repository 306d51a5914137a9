"""
Sakada Cash Advance - Employee Schemas
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EmployeeBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    salary_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


class EmployeeCreate(EmployeeBase):
    """Schema for creating an employee."""
    hire_date: date
    user_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None


class EmployeeUpdate(BaseModel):
    """Schema for updating an employee. Only provided fields change."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    salary_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    hire_date: Optional[date] = None
    user_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None


class EmployeeResponse(EmployeeBase):
    """Schema for employee response."""
    id: UUID
    hire_date: date
    user_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None
    full_name: str
    
    model_config = ConfigDict(from_attributes=True)
