"""
Sakada Cash Advance - Employee Model

Personnel records. The supervisor link is a plain identifier reference;
the employee service validates existence and acyclicity on every write.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from sakada.models.base import BaseModel


class Employee(BaseModel):
    """Employee record, optionally linked one-to-one to a user account."""
    
    __tablename__ = "employees"
    
    # Link to user account (optional - employee may not have system access)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        unique=True,
        nullable=True,
    )
    
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    
    supervisor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    position: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    salary_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=True,
    )
    
    __table_args__ = (
        Index("idx_employees_supervisor", "supervisor_id"),
    )
    
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
    
    def __repr__(self) -> str:
        return f"<Employee(name={self.full_name}, department={self.department})>"
