"""
Sakada Cash Advance - Cash Advance & Payment Models

Cash advance lifecycle:
    PENDING -> APPROVED -> PAID
    PENDING -> REJECTED

Repayment terms (installment_period, monthly_deduction) describe the plan.
The outstanding balance is always derived from recorded payments.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric,
    Select, String, Text, Uuid, Enum as SQLEnum, func, select,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sakada.models.base import BaseModel, utcnow
from sakada.models.employee import Employee


# ===========================================
# ENUMS
# ===========================================

class CashAdvanceStatus(str, Enum):
    """Cash advance status."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"


class PaymentType(str, Enum):
    """How a repayment or disbursement was made."""
    SALARY_DEDUCTION = "SALARY_DEDUCTION"
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"


# ===========================================
# CASH ADVANCES
# ===========================================

class CashAdvance(BaseModel):
    """
    Advance against future salary requested by an employee.
    
    Records are never deleted; they move through statuses until REJECTED
    or PAID.
    """
    
    __tablename__ = "cash_advances"
    
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id"),
        nullable=False,
    )
    
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    
    status: Mapped[CashAdvanceStatus] = mapped_column(
        SQLEnum(
            CashAdvanceStatus,
            name="cash_advance_status",
            native_enum=False,
            create_constraint=True,
            length=20,
        ),
        default=CashAdvanceStatus.PENDING,
        nullable=False,
    )
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    
    # Approval (also recorded on rejection)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    
    # Repayment plan
    installment_period: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Number of payroll cycles for deduction",
    )
    monthly_deduction: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=True,
    )
    
    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="cash_advance",
        order_by="Payment.payment_date",
        lazy="raise",
    )
    
    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_amount"),
        CheckConstraint(
            "(approved_by IS NULL) = (approved_at IS NULL)",
            name="approval_pair",
        ),
        CheckConstraint(
            "status = 'PENDING' OR approved_by IS NOT NULL",
            name="decided_has_approver",
        ),
        Index("idx_cash_advances_employee", "employee_id"),
        Index("idx_cash_advances_status", "status"),
    )
    
    # Field name used by the client-side model
    @property
    def reason(self) -> str:
        return self.purpose
    
    @property
    def is_terminal(self) -> bool:
        return self.status in (CashAdvanceStatus.REJECTED, CashAdvanceStatus.PAID)
    
    def __repr__(self) -> str:
        return f"<CashAdvance(id={self.id}, amount={self.amount}, status={self.status})>"


# ===========================================
# PAYMENTS
# ===========================================

class Payment(BaseModel):
    """
    Individual repayment or disbursement record. Never mutated.
    """
    
    __tablename__ = "payments"
    
    cash_advance_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cash_advances.id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
    )
    payment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    payment_type: Mapped[PaymentType] = mapped_column(
        SQLEnum(
            PaymentType,
            name="payment_type",
            native_enum=False,
            create_constraint=True,
            length=20,
        ),
        nullable=False,
    )
    reference_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    recorded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
    )
    
    cash_advance: Mapped["CashAdvance"] = relationship(
        "CashAdvance",
        back_populates="payments",
        lazy="raise",
    )
    
    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_amount"),
        Index("idx_payments_cash_advance", "cash_advance_id"),
    )
    
    def __repr__(self) -> str:
        return f"<Payment(cash_advance_id={self.cash_advance_id}, amount={self.amount}, type={self.payment_type})>"


# ===========================================
# SUMMARY READ MODEL
# ===========================================

def cash_advance_summary_select() -> Select:
    """
    One row per cash advance with the employee's display name, total paid
    and remaining balance. Also rendered as the cash_advance_summary view.
    """
    total_paid = func.coalesce(func.sum(Payment.amount), 0)
    return (
        select(
            CashAdvance.id.label("id"),
            (Employee.first_name + " " + Employee.last_name).label("employee_name"),
            CashAdvance.amount.label("amount"),
            CashAdvance.status.label("status"),
            CashAdvance.created_at.label("created_at"),
            total_paid.label("total_paid"),
            (CashAdvance.amount - total_paid).label("remaining_balance"),
        )
        .join(Employee, CashAdvance.employee_id == Employee.id)
        .outerjoin(Payment, CashAdvance.id == Payment.cash_advance_id)
        .group_by(CashAdvance.id, Employee.first_name, Employee.last_name)
    )
