"""
Sakada Cash Advance - Cash Advance Schemas

Pydantic schemas for cash advance requests, decisions, payments and the
summary read model.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from sakada.models.cash_advance import CashAdvanceStatus, PaymentType


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class CashAdvanceCreate(BaseModel):
    """Schema for submitting a cash advance request."""
    employee_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    reason: str = Field(..., min_length=1)
    
    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason is required")
        return v.strip()


class CashAdvanceApprove(BaseModel):
    """Schema for approving a pending advance."""
    installment_period: Optional[int] = Field(None, gt=0)
    monthly_deduction: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)


class CashAdvanceReject(BaseModel):
    """Schema for rejecting a pending advance."""
    reason: str = Field(..., min_length=1)


class CashAdvanceMarkPaid(BaseModel):
    """Schema for settling an approved advance."""
    payment_date: Optional[date] = None
    force: bool = False


class PaymentCreate(BaseModel):
    """Schema for recording a repayment."""
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    payment_type: PaymentType
    reference_number: Optional[str] = Field(None, max_length=50)
    paid_at: Optional[datetime] = None


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class PaymentResponse(BaseModel):
    """Schema for payment response."""
    id: UUID
    cash_advance_id: UUID
    amount: Decimal
    payment_date: datetime
    payment_type: PaymentType
    reference_number: Optional[str] = None
    recorded_by: Optional[UUID] = None
    
    model_config = ConfigDict(from_attributes=True)


class CashAdvanceResponse(BaseModel):
    """Schema for cash advance response."""
    id: UUID
    employee_id: UUID
    amount: Decimal
    # Stored as ``purpose``; exposed as ``reason``
    reason: str = Field(validation_alias=AliasChoices("reason", "purpose"))
    status: CashAdvanceStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    payment_date: Optional[date] = None
    installment_period: Optional[int] = None
    monthly_deduction: Optional[Decimal] = None
    
    model_config = ConfigDict(from_attributes=True)


class CashAdvanceSummary(BaseModel):
    """One row of the cash advance summary read model."""
    id: UUID
    employee_name: str
    amount: Decimal
    status: CashAdvanceStatus
    created_at: datetime
    total_paid: Decimal
    remaining_balance: Decimal
    
    model_config = ConfigDict(from_attributes=True)


class CashAdvanceTotals(BaseModel):
    """Portfolio-wide totals."""
    advance_count: int
    total_principal: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    count_by_status: dict = Field(default_factory=dict)


class InstallmentItem(BaseModel):
    """One planned deduction."""
    installment_number: int
    due_date: date
    amount: Decimal
    
    model_config = ConfigDict(from_attributes=True)


class InstallmentSchedule(BaseModel):
    cash_advance_id: UUID
    items: List[InstallmentItem]
